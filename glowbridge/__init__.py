"""Bridge BLE light bulbs to an MQTT home-automation hub."""

__version__ = "0.1.0"
