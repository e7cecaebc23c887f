from .receiver import MQTTReceiver

__all__ = ["MQTTReceiver"]
