"""Invoice management endpoints"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
import structlog

from invoicing.api.deps import (
    get_current_business,
    get_event_bridge,
    get_invoice_service,
    get_payment_service,
    get_queries,
)
from invoicing.models.enums import InvoiceStatus
from invoicing.models.user import User
from invoicing.schemas.common import MessageResponse
from invoicing.schemas.invoice import (
    InvoiceCreate,
    InvoiceDocument,
    InvoiceEnvelope,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStats,
    InvoiceUpdate,
    PaymentCreate,
    ReminderCreate,
    SendInvoiceRequest,
)
from invoicing.services.aws.event_bridge import EventBridgeService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.payment_service import PaymentService
from invoicing.services.queries import InvoiceQueries

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filter by status"),
    client_id: Optional[str] = Query(None, alias="clientId", description="Filter by client ID"),
    search: Optional[str] = Query(None, description="Search invoice number or notes"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_business),
    queries: InvoiceQueries = Depends(get_queries),
):
    """List the business's invoices with filtering, sorting and pagination"""
    return await queries.list_invoices(
        current_user.id,
        status=status_filter,
        client_id=client_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


@router.get("/stats/overview", response_model=InvoiceStats)
async def invoice_stats(
    current_user: User = Depends(get_current_business),
    queries: InvoiceQueries = Depends(get_queries),
):
    return await queries.invoice_stats(current_user.id)


@router.get("/{invoice_id}", response_model=InvoiceDocument)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_business),
    queries: InvoiceQueries = Depends(get_queries),
):
    """Invoice with its client and business details"""
    return await queries.invoice_document(invoice_id, current_user.id)


@router.post("", response_model=InvoiceEnvelope, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    invoice = await invoice_service.create_invoice(data, current_user.id)

    background_tasks.add_task(
        events.publish_invoice_created,
        invoice_id=invoice.id,
        client_id=invoice.client_id,
        invoice_number=invoice.invoice_number,
        amount=str(invoice.total_amount),
        due_date=invoice.due_date.isoformat(),
    )
    return InvoiceEnvelope(message="Invoice created successfully", invoice=InvoiceResponse.model_validate(invoice))


@router.put("/{invoice_id}", response_model=InvoiceEnvelope)
async def update_invoice(
    invoice_id: str,
    data: InvoiceUpdate,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoice_service.update_invoice(invoice_id, data, current_user.id)
    return InvoiceEnvelope(message="Invoice updated successfully", invoice=InvoiceResponse.model_validate(invoice))


@router.delete("/{invoice_id}", response_model=MessageResponse)
async def delete_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    await invoice_service.delete_invoice(invoice_id, current_user.id)
    return MessageResponse(message="Invoice deleted successfully")


@router.post("/{invoice_id}/send", response_model=InvoiceEnvelope)
async def send_invoice(
    invoice_id: str,
    data: Optional[SendInvoiceRequest] = None,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    """Record a delivery and move the invoice to sent"""
    invoice = await invoice_service.mark_sent(invoice_id, data or SendInvoiceRequest(), current_user.id)
    return InvoiceEnvelope(message="Invoice marked as sent", invoice=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/cancel", response_model=InvoiceEnvelope)
async def cancel_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoice_service.cancel_invoice(invoice_id, current_user.id)
    return InvoiceEnvelope(message="Invoice cancelled", invoice=InvoiceResponse.model_validate(invoice))


@router.post("/{invoice_id}/reminders", response_model=InvoiceEnvelope)
async def add_reminder(
    invoice_id: str,
    data: Optional[ReminderCreate] = None,
    current_user: User = Depends(get_current_business),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice, reminder = await invoice_service.add_reminder(invoice_id, data or ReminderCreate(), current_user.id)
    return InvoiceEnvelope(
        message=f"Reminder recorded ({reminder['days_overdue']} days overdue)",
        invoice=InvoiceResponse.model_validate(invoice),
    )


@router.post("/{invoice_id}/payment", response_model=InvoiceEnvelope)
async def record_payment(
    invoice_id: str,
    data: PaymentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_business),
    payment_service: PaymentService = Depends(get_payment_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    """Record a payment entered by the business"""
    invoice = await payment_service.apply_payment(invoice_id, data, current_user.id)

    background_tasks.add_task(
        events.publish_payment_applied,
        invoice_id=invoice.id,
        client_id=invoice.client_id,
        amount=str(data.amount),
        status=invoice.status.value,
    )
    return InvoiceEnvelope(message="Payment recorded successfully", invoice=InvoiceResponse.model_validate(invoice))
