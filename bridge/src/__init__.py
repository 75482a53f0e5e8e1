"""
Bridge daemon package for the Neurio-to-MQTT pipeline.

Polls Neurio power sensors over their local HTTP API, republishes per-channel
readings to an MQTT broker, and generates Home Assistant discovery topics.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""
