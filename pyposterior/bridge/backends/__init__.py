"""Bridge sampling backends."""

from pyposterior.bridge.backends.cpu import CPUBridgeBackend

__all__ = ["CPUBridgeBackend"]
