"""
Collector service package for the Solarman energy bridge.

Samples a Solarman-monitored inverter through the Solarman cloud API,
reconciles the readings into a monotonic lifetime-energy series, persists
samples in a local SQLite database, and serves live and aggregate values
over HTTP.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""
