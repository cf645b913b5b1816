"""Simulated operating-system services built around a portable bytecode VM."""

__version__ = "0.1.0"