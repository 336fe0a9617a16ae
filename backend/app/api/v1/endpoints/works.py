from fastapi import APIRouter, Body, Depends, Query
from typing import Any, Dict, Optional

from app.core.exceptions import InvalidInputError
from app.core.logging_config import logger, set_partition_year
from app.modules.auth.dependencies import require_work_access
from app.modules.works.lookup import MatchField
from app.modules.works.partitioning import resolve_year
from app.modules.works.service import WorkService, get_work_service
from app.schemas.work import (
    DatesResponse,
    LookupResponse,
    SuccessResponse,
    WorkSummaryResponse,
    is_valid_date_key,
    partition_to_json,
    validate_partition_payload,
)


router = APIRouter(prefix="/works", tags=["Works"], dependencies=[Depends(require_work_access)])


def resolve_request_year(
    year: Optional[int] = Query(None, ge=1, le=9999, description="Partition year, defaults to the current year")
) -> int:
    resolved = resolve_year(year)
    set_partition_year(str(resolved))
    return resolved


@router.get("")
async def get_works(
    year: int = Depends(resolve_request_year),
    service: WorkService = Depends(get_work_service)
) -> Dict[str, Any]:
    """Full year partition: date -> list of work items"""
    partition = await service.get_partition(year)
    return partition_to_json(partition)


@router.post("", response_model=SuccessResponse)
async def save_works(
    payload: Any = Body(...),
    year: int = Depends(resolve_request_year),
    service: WorkService = Depends(get_work_service)
):
    """
    Merge a partial partition into the stored year.

    Each date bucket sent replaces the stored bucket for that date; dates
    not in the body are left as they are.
    """
    partial = validate_partition_payload(payload, year)
    await service.save_partition(year, partial)
    logger.info(f"Saved {len(partial)} date bucket(s) into {year}")
    return SuccessResponse()


@router.get("/dates", response_model=DatesResponse)
async def get_dates_with_works(
    year: int = Depends(resolve_request_year),
    service: WorkService = Depends(get_work_service)
):
    """Dates of the year holding at least one work item"""
    return DatesResponse(year=year, dates=await service.get_dates_with_works(year))


@router.get("/lookup", response_model=LookupResponse)
async def lookup_work(
    number: Optional[str] = Query(None),
    reference: Optional[str] = Query(None),
    lookback: Optional[int] = Query(None, ge=0, description="Extra years scanned before `year`"),
    year: int = Depends(resolve_request_year),
    service: WorkService = Depends(get_work_service)
):
    """Most recent work item with the given number or reference"""
    if (number is None) == (reference is None):
        raise InvalidInputError("Provide exactly one of 'number' or 'reference'")

    if number is not None:
        match = await service.lookup(MatchField.NUMBER, number, year, lookback)
    else:
        match = await service.lookup(MatchField.REFERENCE, reference, year, lookback)

    return LookupResponse(found=match is not None, work=match)


@router.get("/summary", response_model=WorkSummaryResponse)
async def summarize_works(
    start: str = Query(..., description="First date, YYYY-MM-DD"),
    end: str = Query(..., description="Last date, YYYY-MM-DD"),
    service: WorkService = Depends(get_work_service)
):
    """Work statistics for an inclusive date range, possibly across years"""
    for name, value in (("start", start), ("end", end)):
        if not is_valid_date_key(value):
            raise InvalidInputError(f"'{name}' must be a date formatted YYYY-MM-DD", field=name)

    return WorkSummaryResponse(**await service.summarize(start, end))


@router.delete("/{work_id}", response_model=SuccessResponse)
async def delete_work(
    work_id: str,
    year: int = Depends(resolve_request_year),
    service: WorkService = Depends(get_work_service)
):
    """Remove one work item by id from the year partition"""
    await service.delete_work(year, work_id)
    return SuccessResponse()
