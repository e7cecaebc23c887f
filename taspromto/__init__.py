"""taspromto - MQTT device telemetry to Prometheus exposition bridge."""

__version__ = "0.4.0"
