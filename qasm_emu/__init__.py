"""Resolver and state-vector emulator for a small quantum assembly language."""

__version__ = "0.1.0"
__all__ = ["ast", "gates", "emulator"]