"""Game server transport."""
from .channel import SessionChannel

__all__ = ["SessionChannel"]
