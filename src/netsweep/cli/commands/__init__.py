"""Concrete command implementations for the netsweep CLI."""
from __future__ import annotations

from . import network_scan

__all__ = ["network_scan"]
