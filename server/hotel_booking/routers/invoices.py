"""Invoice router for invoice reads, status changes and email delivery."""

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
from ..models.invoice import InvoiceStatus
from ..schemas.common import Pagination
from ..schemas.invoice import (
    Invoice,
    InvoiceList,
    InvoiceSummary,
    SendInvoiceEmailRequest,
    SendInvoiceEmailResponse,
    UpdateInvoiceStatusRequest,
)
from ..services.invoice_service import InvoiceService
from ..services.notification_service import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/invoices", tags=["invoices"])

DB_DEPENDENCY = Depends(get_db)
CALLER_DEPENDENCY = Depends(get_current_user)
STAFF_DEPENDENCY = Depends(require_staff)
NOTIFIER_DEPENDENCY = Depends(get_notifier)


@router.get("", response_model=InvoiceList)
async def list_invoices(
    client_id: Optional[int] = Query(None, ge=1),
    status: Optional[InvoiceStatus] = Query(None),
    date_from: Optional[date] = Query(None, description="Earliest generation day"),
    date_to: Optional[date] = Query(None, description="Latest generation day"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """List invoices; clients only see their own."""
    try:
        limit = min(limit or settings.default_page_size, settings.max_page_size)
        invoices, total = await InvoiceService(db).list_invoices(
            caller,
            client_id=client_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
        response = InvoiceList(
            items=[InvoiceSummary.model_validate(invoice) for invoice in invoices],
            pagination=Pagination.build(page, limit, total),
        )
        return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in invoice listing",
            extra={"user_id": caller.user_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(
    invoice_id: int,
    caller: Caller = CALLER_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Invoice detail with its lines."""
    try:
        invoice = await InvoiceService(db).get_invoice(invoice_id, caller)
        return JSONResponse(status_code=200, content=Invoice.model_validate(invoice).model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in invoice retrieval",
            extra={"invoice_id": invoice_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.put("/{invoice_id}/status", response_model=Invoice)
async def update_invoice_status(
    invoice_id: int,
    request: UpdateInvoiceStatusRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Move an invoice forward (staff only)."""
    try:
        invoice = await InvoiceService(db).update_invoice_status(invoice_id, request.status)
        return JSONResponse(status_code=200, content=Invoice.model_validate(invoice).model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in invoice status update",
            extra={"invoice_id": invoice_id, "status": request.status, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()


@router.post("/{invoice_id}/send-email", response_model=SendInvoiceEmailResponse)
async def send_invoice_email(
    invoice_id: int,
    request: SendInvoiceEmailRequest,
    caller: Caller = STAFF_DEPENDENCY,
    db: AsyncSession = DB_DEPENDENCY,
    notifier: Notifier = NOTIFIER_DEPENDENCY,
) -> JSONResponse:
    """
    Email an invoice (staff only).

    Delivery is best effort: a failed send is reported with ``sent: false``
    rather than as an error.
    """
    try:
        recipient, sent = await InvoiceService(db, notifier).send_invoice_email(
            invoice_id, caller, request.recipient_email
        )
        response = SendInvoiceEmailResponse(invoice_id=invoice_id, recipient_email=recipient, sent=sent)
        return JSONResponse(status_code=200, content=response.model_dump(mode="json"))
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error in invoice email",
            extra={"invoice_id": invoice_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()
