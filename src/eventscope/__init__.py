"""eventscope: capture, correlate, persist and query telemetry events."""

__version__ = "0.1.0"

__all__ = ["__version__"]
