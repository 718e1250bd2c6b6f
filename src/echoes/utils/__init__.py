"""Shared helpers for errors-and-echoes."""

from .clock import Clock, system_clock, utc_iso

__all__ = ["Clock", "system_clock", "utc_iso"]
