"""Event capture and delivery.

Structure:
    buffered.py    - BufferedEventLogger (producer API, bounded queue, worker)
    sinks.py       - EventSink implementations and SINK_REGISTRY
    bridge.py      - TelemetryLogHandler (standard logging -> events)

Import directly from submodules:
    from eventscope.logger.buffered import BufferedEventLogger
"""

__all__: list[str] = []
