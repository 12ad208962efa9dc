"""
pins package

Slide-partitioned pin state derived from feedback items.
"""

from pins.store import PinStore, build_pin_map

__all__ = ["PinStore", "build_pin_map"]
