# Pydantic schemas
from app.schemas.auth import (
    AuthResponse,
    PasswordChange,
    UserLogin,
    UserRegister,
    UserResponse,
)
from app.schemas.work import (
    DatesResponse,
    Department,
    LookupResponse,
    SuccessResponse,
    WorkItem,
    WorkStatus,
    WorkSummaryResponse,
    YearPartition,
)
