"""
BMS dashboard backend package.

Serves battery telemetry to the dashboard UI: fetches raw BMS rows from the
compute collaborator, reshapes them into per-node chart series, caches and
coalesces requests per device and time range, polls the latest reading on a
shared schedule, and stores per-user battery registrations.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
