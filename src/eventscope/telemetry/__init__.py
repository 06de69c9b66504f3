"""Telemetry about the pipeline itself.

Structure:
    system/         Operational logs (system.jsonl) and per-item
                    worker diagnostics (diagnostics.jsonl)
"""

__all__: list[str] = []
