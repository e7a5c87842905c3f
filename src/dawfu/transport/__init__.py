"""BLE transport layer."""

from .connection import Session, connect

__all__ = ["Session", "connect"]
