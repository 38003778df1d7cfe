"""Rate and availability router."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_admin
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..core.identity import Caller
from ..schemas.rate import Availability, RateQuote, RoomRate, UpsertRateRequest
from ..services.availability_service import AvailabilityService
from ..services.catalog_service import CatalogService
from ..services.rate_service import RateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["rates"])

DB_DEPENDENCY = Depends(get_db)
CALLER_DEPENDENCY = Depends(get_current_user)
ADMIN_DEPENDENCY = Depends(require_admin)


@router.post("/rates", response_model=RoomRate)
async def upsert_rate(
    request: UpsertRateRequest,
    caller: Caller = ADMIN_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Create or update a room rate (admin only).

    The general rate of a room type is updated in place (200); a new
    general or seasonal rate is created (201).
    """
    try:
        rate, created = await RateService(db).upsert_rate(request)
        return JSONResponse(
            status_code=201 if created else 200,
            content=RoomRate.model_validate(rate).model_dump(mode="json"),
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in rate upsert",
            extra={"hotel_id": request.hotel_id, "room_type_id": request.room_type_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.get("/rates", response_model=list[RoomRate])
async def list_rates(
    hotel_id: int = Query(..., ge=1),
    room_type_id: Optional[int] = Query(None, ge=1),
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Rates of a hotel, optionally for one room type."""
    try:
        rates = await RateService(db).list_rates(hotel_id, room_type_id)
        return JSONResponse(
            status_code=200,
            content=[RoomRate.model_validate(rate).model_dump(mode="json") for rate in rates],
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in rate listing",
            extra={"hotel_id": hotel_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.get("/rates/quote", response_model=RateQuote)
async def quote_rate(
    hotel_id: int = Query(..., ge=1),
    room_type_id: int = Query(..., ge=1),
    on_date: date = Query(..., alias="date", description="Night to price"),
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Resolve the nightly price of a room type for one night."""
    try:
        await CatalogService(db).get_room_type_or_raise(hotel_id, room_type_id)
        price, is_default = await RateService(db).quote(hotel_id, room_type_id, on_date)
        response = RateQuote(
            hotel_id=hotel_id,
            room_type_id=room_type_id,
            stay_date=on_date,
            nightly_rate=price,
            is_default=is_default,
        )
        return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in rate quote",
            extra={"hotel_id": hotel_id, "room_type_id": room_type_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.get("/availability", response_model=Availability, tags=["availability"])
async def check_availability(
    hotel_id: int = Query(..., ge=1),
    room_type_id: int = Query(..., ge=1),
    check_in_date: date = Query(...),
    check_out_date: date = Query(...),
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Preview free rooms of a type for a date range.

    Read only: nothing is reserved, so a later booking may still find the
    rooms taken.
    """
    try:
        await CatalogService(db).get_room_type_or_raise(hotel_id, room_type_id)
        rooms = await AvailabilityService(db).find_available_rooms(
            hotel_id, room_type_id, check_in_date, check_out_date
        )
        response = Availability(
            hotel_id=hotel_id,
            room_type_id=room_type_id,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            available_count=len(rooms),
            room_ids=[room.id for room in rooms],
        )
        return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in availability check",
            extra={"hotel_id": hotel_id, "room_type_id": room_type_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
