"""Client controller for the infect.live zombies vs humans scanning game."""
from .session_controller import SessionController

__all__ = ["SessionController"]
