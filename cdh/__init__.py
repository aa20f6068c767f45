"""Container Deploy Harness (CDH).

Small, single-host deployment tooling that:
 - builds and publishes tagged images from a compose build manifest
 - rolls a service on the target host over to a published image
 - gates the rollout on a polling health check

Everything runs sequentially in one process so a CI runner can own it end to end.
"""
