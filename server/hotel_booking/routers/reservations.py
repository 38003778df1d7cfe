"""Reservation router for booking and lifecycle operations."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import get_db
from ..core.dependencies import get_current_user, get_notifier, require_staff
from ..core.exceptions import InternalServerError, ProblemDetailsException
from ..core.identity import Caller
from ..models.reservation import ReservationStatus
from ..schemas.common import Pagination
from ..schemas.consumption import ConsumptionItem, CreateConsumptionRequest
from ..schemas.invoice import Invoice
from ..schemas.reservation import (
    AgentCreateReservationRequest,
    AssignRoomsRequest,
    CreateReservationRequest,
    Reservation,
    ReservationCreated,
    ReservationList,
    ReservationRoom,
    UpdateReservationRequest,
)
from ..services.booking_service import BookingService
from ..services.consumption_service import ConsumptionService
from ..services.invoice_service import InvoiceService
from ..services.lifecycle_service import LifecycleService
from ..services.notification_service import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/reservations", tags=["reservations"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
CALLER_DEPENDENCY = Depends(get_current_user)
STAFF_DEPENDENCY = Depends(require_staff)
NOTIFIER_DEPENDENCY = Depends(get_notifier)


def _convert_reservation_to_schema(reservation_model) -> Reservation:
    """Convert reservation model to schema."""
    return Reservation(
        id=reservation_model.id,
        reference_number=reservation_model.reference_number,
        client_id=reservation_model.client_id,
        hotel_id=reservation_model.hotel_id,
        created_by_user_id=reservation_model.created_by_user_id,
        check_in_date=reservation_model.check_in_date,
        check_out_date=reservation_model.check_out_date,
        nights=reservation_model.nights,
        total_amount=reservation_model.total_amount,
        status=reservation_model.status,
        actual_check_in_time=reservation_model.actual_check_in_time,
        actual_check_out_time=reservation_model.actual_check_out_time,
        cancelled_at=reservation_model.cancelled_at,
        created_at=reservation_model.created_at,
        updated_at=reservation_model.updated_at,
        rooms=[
            ReservationRoom(
                id=entry.id,
                room_id=entry.room_id,
                room_number=entry.room.room_number if entry.room else None,
                room_type_id=entry.room_type_id,
                rate_per_night=entry.rate_per_night,
            )
            for entry in reservation_model.rooms
        ],
        special_requests=[request.request_text for request in reservation_model.special_requests],
    )


def _json(model, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=model.model_dump(mode="json"))


def _unexpected(operation: str, error: Exception, **context) -> InternalServerError:
    logger.error(
        f"Unexpected error in {operation}",
        extra={**context, "error": str(error)},
        exc_info=True
    )
    return InternalServerError()


@router.post("", response_model=ReservationCreated, status_code=201)
async def create_reservation(
    request: CreateReservationRequest,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
    notifier: Notifier = NOTIFIER_DEPENDENCY,
) -> JSONResponse:
    """
    Book one or more room types for the calling client.

    Either every requested room is allocated or nothing is stored.
    """
    try:
        reservation = await BookingService(db, notifier).create_reservation(caller, request)
        return _json(
            ReservationCreated(
                reservation_id=reservation.id,
                reference_number=reservation.reference_number,
                total_amount=reservation.total_amount,
                status=reservation.status,
            ),
            status_code=201,
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("reservation creation", e, hotel_id=request.hotel_id, user_id=caller.user_id)


@router.post("/agent", response_model=Reservation, status_code=201)
async def create_reservation_for_client(
    request: AgentCreateReservationRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
    notifier: Notifier = NOTIFIER_DEPENDENCY,
) -> JSONResponse:
    """Book on behalf of a client (staff only)."""
    try:
        reservation = await BookingService(db, notifier).create_reservation_for_client(caller, request)
        return _json(_convert_reservation_to_schema(reservation), status_code=201)
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("agent reservation creation", e, client_id=request.client_id, user_id=caller.user_id)


@router.get("/mine", response_model=list[Reservation])
async def list_my_reservations(
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Reservations owned by the caller."""
    try:
        reservations = await BookingService(db).list_client_reservations(caller.user_id)
        return JSONResponse(
            status_code=200,
            content=[_convert_reservation_to_schema(r).model_dump(mode="json") for r in reservations],
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("own reservation listing", e, user_id=caller.user_id)


@router.get("", response_model=ReservationList)
async def list_reservations(
    client_id: Optional[int] = Query(None, ge=1),
    hotel_id: Optional[int] = Query(None, ge=1),
    status: Optional[ReservationStatus] = Query(None),
    date_from: Optional[date] = Query(None, description="Earliest check-in date"),
    date_to: Optional[date] = Query(None, description="Latest check-in date"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Search reservations (staff only)."""
    try:
        limit = min(limit or settings.default_page_size, settings.max_page_size)
        reservations, total = await BookingService(db).list_reservations(
            client_id=client_id,
            hotel_id=hotel_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
        response = ReservationList(
            items=[_convert_reservation_to_schema(r) for r in reservations],
            pagination=Pagination.build(page, limit, total),
        )
        return _json(response)
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("reservation listing", e, user_id=caller.user_id)


@router.get("/{reservation_id}", response_model=Reservation)
async def get_reservation(
    reservation_id: int,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Reservation detail for its owner or staff."""
    try:
        reservation = await BookingService(db).get_reservation(reservation_id, caller)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("reservation retrieval", e, reservation_id=reservation_id)


@router.patch("/{reservation_id}", response_model=Reservation)
async def update_reservation(
    reservation_id: int,
    request: UpdateReservationRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Change dates, special requests or status (staff only)."""
    try:
        reservation = await LifecycleService(db).update_reservation(reservation_id, request)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("reservation update", e, reservation_id=reservation_id, user_id=caller.user_id)


@router.post("/{reservation_id}/cancel", response_model=Reservation)
async def cancel_reservation(
    reservation_id: int,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
    notifier: Notifier = NOTIFIER_DEPENDENCY,
) -> JSONResponse:
    """Cancel a confirmed reservation."""
    try:
        reservation = await LifecycleService(db, notifier).cancel(reservation_id, caller)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("reservation cancellation", e, reservation_id=reservation_id)


@router.post("/{reservation_id}/check-in", response_model=Reservation)
async def check_in(
    reservation_id: int,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Check the guest in (staff only)."""
    try:
        reservation = await LifecycleService(db).check_in(reservation_id)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("check-in", e, reservation_id=reservation_id)


@router.post("/{reservation_id}/check-out", response_model=Reservation)
async def check_out(
    reservation_id: int,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Check the guest out (staff only)."""
    try:
        reservation = await LifecycleService(db).check_out(reservation_id)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("check-out", e, reservation_id=reservation_id)


@router.post("/{reservation_id}/assign-room", response_model=Reservation)
async def assign_rooms(
    reservation_id: int,
    request: AssignRoomsRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Move allocated rooms to other rooms of the same type (staff only)."""
    try:
        reservation = await LifecycleService(db).reassign_rooms(reservation_id, request.assignments)
        return _json(_convert_reservation_to_schema(reservation))
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("room reassignment", e, reservation_id=reservation_id)


@router.post("/{reservation_id}/consumptions", response_model=ConsumptionItem, status_code=201)
async def add_consumption(
    reservation_id: int,
    request: CreateConsumptionRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Record a consumed item for a checked-in guest (staff only)."""
    try:
        item = await ConsumptionService(db).add_consumption(reservation_id, request)
        return _json(ConsumptionItem.model_validate(item), status_code=201)
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("consumption recording", e, reservation_id=reservation_id)


@router.get("/{reservation_id}/consumptions", response_model=list[ConsumptionItem])
async def list_consumptions(
    reservation_id: int,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Consumption items of a reservation for its owner or staff."""
    try:
        items = await ConsumptionService(db).list_consumptions(reservation_id, caller)
        return JSONResponse(
            status_code=200,
            content=[ConsumptionItem.model_validate(item).model_dump(mode="json") for item in items],
        )
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("consumption listing", e, reservation_id=reservation_id)


@router.post("/{reservation_id}/invoice", response_model=Invoice)
async def generate_invoice(
    reservation_id: int,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Generate the invoice of a reservation, or return the existing one.

    Responds 201 when the invoice is created and 200 when it already existed.
    """
    try:
        invoice, created = await InvoiceService(db).generate_or_get_invoice(reservation_id, caller)
        return _json(Invoice.model_validate(invoice), status_code=201 if created else 200)
    except ProblemDetailsException:
        raise
    except Exception as e:
        raise _unexpected("invoice generation", e, reservation_id=reservation_id)
