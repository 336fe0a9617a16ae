# Re-export all models for convenient imports
from app.models.user import User

__all__ = [
    "User",
]
