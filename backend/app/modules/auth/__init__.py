# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_token_payload,
    require_work_access,
)

__all__ = [
    "get_current_user",
    "get_token_payload",
    "require_work_access",
]
