"""Command line entry points for netsweep."""
from __future__ import annotations

from . import commands
from .commands.network_scan import main

__all__ = ["commands", "main"]
