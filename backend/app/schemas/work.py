"""
Work item schemas

A year partition is a plain ``Dict[str, List[WorkItem]]`` keyed by
``YYYY-MM-DD`` date strings. Department and status are stored as the raw
tokens below and only translated for display.
"""
import enum
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, ValidationInfo, field_validator

from app.core.exceptions import InvalidInputError


DATE_FORMAT = "%Y-%m-%d"
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Department(str, enum.Enum):
    """Department tokens as stored"""
    MECHANICAL = "Mechanical"
    ELECTRICAL = "Electrical"
    INSTRUMENTATION = "Instrumentation"
    SERVICE = "Service"
    OPERATIONS = "Operations"

    @property
    def label(self) -> str:
        return _DEPARTMENT_LABELS[self]


_DEPARTMENT_LABELS = {
    Department.MECHANICAL: "Mechanical",
    Department.ELECTRICAL: "Electrical",
    Department.INSTRUMENTATION: "Service",
    Department.SERVICE: "Nitrate",
    Department.OPERATIONS: "Other",
}


class WorkStatus(str, enum.Enum):
    """Lifecycle tokens as stored"""
    COMPLETED = "Completed"
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    CANCELLED = "Cancelled"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    WorkStatus.COMPLETED: "Completed",
    WorkStatus.PENDING: "Immediate",
    WorkStatus.IN_PROGRESS: "In Progress",
    WorkStatus.ON_HOLD: "Requested",
    WorkStatus.CANCELLED: "Start",
}


def generate_work_id() -> str:
    """Generate an opaque work item id"""
    return str(uuid.uuid4())


def is_valid_date_key(value: Any) -> bool:
    """True for a real calendar date written as YYYY-MM-DD"""
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


class WorkItem(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_work_id, min_length=1)
    number: str
    reference: str
    description: str
    department: str
    status: str = ""
    remarks: str = ""
    date: str

    @field_validator("number", "reference", "description", "department")
    @classmethod
    def not_blank(cls, v: str, info: ValidationInfo) -> str:
        if not v.strip():
            raise ValueError(f"{info.field_name} is required")
        return v

    @field_validator("status", "remarks", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("date")
    @classmethod
    def valid_date(cls, v: str) -> str:
        if not is_valid_date_key(v):
            raise ValueError("date must be a calendar date formatted YYYY-MM-DD")
        return v

    def duplicate_key(self) -> tuple:
        """Fields compared for duplicate detection; id is excluded"""
        return (
            self.number,
            self.reference,
            self.description,
            self.department,
            self.status,
            self.remarks,
            self.date,
        )

    def is_duplicate_of(self, other: "WorkItem") -> bool:
        return self.duplicate_key() == other.duplicate_key()


YearPartition = Dict[str, List[WorkItem]]

work_item_list_adapter = TypeAdapter(List[WorkItem])


def partition_to_json(partition: YearPartition) -> Dict[str, List[Dict[str, Any]]]:
    """Serialize a partition to plain JSON-compatible dicts"""
    return {
        date_key: [item.model_dump() for item in items]
        for date_key, items in partition.items()
    }


def validate_partition_payload(payload: Any, year: int) -> YearPartition:
    """
    Validate a (partial) year partition received from a client.

    Every key must be a date of ``year`` and every item must carry the
    date of the bucket it sits in, so an item can never land in the
    wrong partition.
    """
    if not isinstance(payload, dict):
        raise InvalidInputError("Request body must be a JSON object keyed by date")

    partition: YearPartition = {}
    for date_key, bucket in payload.items():
        if not is_valid_date_key(date_key):
            raise InvalidInputError(f"Invalid date key '{date_key}'", field=date_key)
        if int(date_key[:4]) != year:
            raise InvalidInputError(
                f"Date '{date_key}' does not belong to year {year}",
                field=date_key,
            )
        if not isinstance(bucket, list):
            raise InvalidInputError(f"Bucket '{date_key}' must be a list of work items", field=date_key)
        try:
            items = work_item_list_adapter.validate_python(bucket)
        except ValidationError as e:
            raise InvalidInputError(
                f"Invalid work item in bucket '{date_key}'",
                field=date_key,
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"]}
                    for err in e.errors()
                ],
            )
        for item in items:
            if item.date != date_key:
                raise InvalidInputError(
                    f"Work item '{item.id}' has date '{item.date}' but was sent under '{date_key}'",
                    field=date_key,
                )
        partition[date_key] = items
    return partition


# ============================================
# Response schemas
# ============================================

class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class LookupResponse(BaseModel):
    found: bool
    work: Optional[WorkItem] = None


class DatesResponse(BaseModel):
    year: int
    dates: List[str]


class WorkSummaryResponse(BaseModel):
    start: str
    end: str
    years: List[int]
    total_works: int
    dates: int
    by_status: Dict[str, int]
    by_department: Dict[str, int]
