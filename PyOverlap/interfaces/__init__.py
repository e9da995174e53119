"""Data models and protocols for PyOverlap.

- annotation: intervals, annotation instances and lookup protocols
- config: analysis configuration and option enums
- sink: stratified result sink protocol
- stats: per-pass statistics bundle
"""
