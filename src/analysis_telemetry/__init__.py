"""
Analysis Telemetry - event correlation for analysis-server instrumentation

Turns interleaved protocol and editor events into derived measurements:
- Round-trip latency per protocol method
- First-result latency per opened file (errors, highlights, outline)
- Sampled computed-error events and aggregate diagnostics counts
- Completion accept/reject events, once per lookup session
"""

__version__ = "0.1.0"
