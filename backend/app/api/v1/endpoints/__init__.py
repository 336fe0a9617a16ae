# API endpoints
from . import auth, health, works

__all__ = ["auth", "health", "works"]
