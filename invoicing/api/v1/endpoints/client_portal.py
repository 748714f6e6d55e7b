"""Client portal endpoints, plus the business-side review of payment and profile requests"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
import structlog

from invoicing.api.deps import (
    get_current_business,
    get_current_client,
    get_event_bridge,
    get_invoice_service,
    get_payment_request_service,
    get_portal_service,
    get_profile_request_service,
    get_queries,
)
from invoicing.models.client import Client
from invoicing.models.enums import PaymentRequestStatus, ProfileRequestStatus
from invoicing.models.user import User
from invoicing.repositories.payment_request_repository import RequestRow
from invoicing.schemas.auth import (
    ApproveRequest,
    ClientTokenResponse,
    InviteRequest,
    InviteResponse,
    LoginRequest,
    PortalClient,
    PortalClientResponse,
)
from invoicing.schemas.client import ClientResponse
from invoicing.schemas.common import MessageResponse
from invoicing.schemas.invoice import InvoiceDocument, InvoiceListItem, InvoiceResponse
from invoicing.schemas.payment_request import (
    PaymentRequestCreate,
    PaymentRequestEnvelope,
    PaymentRequestListResponse,
    PaymentRequestResponse,
    PaymentRequestReviewResponse,
)
from invoicing.schemas.profile_request import (
    ProfileRequestCreate,
    ProfileRequestEnvelope,
    ProfileRequestListResponse,
    ProfileRequestResponse,
    ProfileRequestReviewResponse,
)
from invoicing.services.aws.event_bridge import EventBridgeService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.payment_request_service import PaymentRequestService
from invoicing.services.portal_service import ClientPortalService
from invoicing.services.profile_request_service import ProfileRequestService
from invoicing.services.queries import InvoiceQueries

router = APIRouter()
logger = structlog.get_logger()


def to_response(row: RequestRow) -> PaymentRequestResponse:
    request, invoice_number, client_name = row
    response = PaymentRequestResponse.model_validate(request)
    response.invoice_number = invoice_number
    response.client_name = client_name
    return response


# Business side

@router.post("/invite", response_model=InviteResponse)
async def invite_client(
    data: InviteRequest,
    current_user: User = Depends(get_current_business),
    portal_service: ClientPortalService = Depends(get_portal_service),
):
    """Issue an approval link the client uses to set a portal password"""
    _, link = await portal_service.invite(data.client_id, current_user.id)
    return InviteResponse(message="Invitation created", approval_link=link)


@router.get("/admin/payment-requests", response_model=PaymentRequestListResponse)
async def list_payment_requests(
    status_filter: Optional[str] = Query("pending", alias="status", pattern="^(pending|approved|rejected|all)$"),
    current_user: User = Depends(get_current_business),
    request_service: PaymentRequestService = Depends(get_payment_request_service),
):
    request_status = None if status_filter == "all" else PaymentRequestStatus(status_filter)
    rows = await request_service.list_for_business(current_user.id, request_status)
    return PaymentRequestListResponse(requests=[to_response(row) for row in rows])


@router.post("/admin/payment-requests/{request_id}/approve", response_model=PaymentRequestReviewResponse)
async def approve_payment_request(
    request_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_business),
    request_service: PaymentRequestService = Depends(get_payment_request_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    """Approve a claim; the amount is applied to the invoice as a payment"""
    request, invoice = await request_service.approve(request_id, current_user.id)

    background_tasks.add_task(
        events.publish_payment_applied,
        invoice_id=invoice.id,
        client_id=invoice.client_id,
        amount=str(request.amount),
        status=invoice.status.value,
        source="client_request",
    )
    background_tasks.add_task(
        events.publish_payment_request_reviewed,
        request_id=request.id,
        invoice_id=invoice.id,
        decision=request.status.value,
        reviewed_by=current_user.id,
    )
    return PaymentRequestReviewResponse(
        message="Payment request approved",
        request=PaymentRequestResponse.model_validate(request),
        invoice=InvoiceResponse.model_validate(invoice),
    )


@router.post("/admin/payment-requests/{request_id}/reject", response_model=PaymentRequestReviewResponse)
async def reject_payment_request(
    request_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_business),
    request_service: PaymentRequestService = Depends(get_payment_request_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    request = await request_service.reject(request_id, current_user.id)

    background_tasks.add_task(
        events.publish_payment_request_reviewed,
        request_id=request.id,
        invoice_id=request.invoice_id,
        decision=request.status.value,
        reviewed_by=current_user.id,
    )
    return PaymentRequestReviewResponse(
        message="Payment request rejected",
        request=PaymentRequestResponse.model_validate(request),
    )


@router.get("/admin/profile-requests", response_model=ProfileRequestListResponse)
async def list_profile_requests(
    status_filter: Optional[str] = Query("pending", alias="status", pattern="^(pending|approved|rejected|all)$"),
    current_user: User = Depends(get_current_business),
    profile_service: ProfileRequestService = Depends(get_profile_request_service),
):
    request_status = None if status_filter == "all" else ProfileRequestStatus(status_filter)
    requests = await profile_service.list_for_business(current_user.id, request_status)
    return ProfileRequestListResponse(requests=[ProfileRequestResponse.model_validate(r) for r in requests])


@router.post("/admin/profile-requests/{request_id}/approve", response_model=ProfileRequestReviewResponse)
async def approve_profile_request(
    request_id: str,
    current_user: User = Depends(get_current_business),
    profile_service: ProfileRequestService = Depends(get_profile_request_service),
):
    """Create a client from the request; portal access is granted separately by invite"""
    request, client = await profile_service.approve(request_id, current_user.id)
    return ProfileRequestReviewResponse(
        message="Client created from profile request",
        request=ProfileRequestResponse.model_validate(request),
        client=ClientResponse.model_validate(client),
    )


@router.post("/admin/profile-requests/{request_id}/reject", response_model=ProfileRequestReviewResponse)
async def reject_profile_request(
    request_id: str,
    current_user: User = Depends(get_current_business),
    profile_service: ProfileRequestService = Depends(get_profile_request_service),
):
    request = await profile_service.reject(request_id, current_user.id)
    return ProfileRequestReviewResponse(
        message="Profile request rejected",
        request=ProfileRequestResponse.model_validate(request),
    )


# Public

@router.post("/profile-requests", response_model=ProfileRequestEnvelope, status_code=status.HTTP_201_CREATED)
async def submit_profile_request(
    data: ProfileRequestCreate,
    profile_service: ProfileRequestService = Depends(get_profile_request_service),
):
    """Ask a business, named by id or email, to add the submitter as a client"""
    request = await profile_service.submit(data)
    return ProfileRequestEnvelope(
        message="Profile request submitted",
        request=ProfileRequestResponse.model_validate(request),
    )


# Client side

@router.post("/approve", response_model=MessageResponse)
async def approve_access(
    data: ApproveRequest,
    portal_service: ClientPortalService = Depends(get_portal_service),
):
    await portal_service.approve(data.token, data.password)
    return MessageResponse(message="Account approved, you can now log in")


@router.post("/login", response_model=ClientTokenResponse)
async def client_login(
    data: LoginRequest,
    portal_service: ClientPortalService = Depends(get_portal_service),
):
    client, token = await portal_service.login(data.email, data.password)
    return ClientTokenResponse(
        message="Login successful",
        token=token,
        client=PortalClient.model_validate(client),
    )


@router.get("/me", response_model=PortalClientResponse)
async def client_me(current_client: Client = Depends(get_current_client)):
    return PortalClientResponse(client=PortalClient.model_validate(current_client))


@router.get("/invoices", response_model=List[InvoiceListItem])
async def client_invoices(
    current_client: Client = Depends(get_current_client),
    portal_service: ClientPortalService = Depends(get_portal_service),
    queries: InvoiceQueries = Depends(get_queries),
):
    """Invoices of every client record of this business sharing the email"""
    client_ids = await portal_service.peer_ids(current_client)
    return await queries.portal_invoices(current_client, client_ids)


@router.get("/invoices/{invoice_id}", response_model=InvoiceDocument)
async def client_invoice(
    invoice_id: str,
    current_client: Client = Depends(get_current_client),
    portal_service: ClientPortalService = Depends(get_portal_service),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    queries: InvoiceQueries = Depends(get_queries),
):
    client_ids = await portal_service.peer_ids(current_client)
    invoice = await invoice_service.view_as_client(invoice_id, client_ids)
    return await queries.portal_document(invoice)


@router.post(
    "/invoices/{invoice_id}/payment-request",
    response_model=PaymentRequestEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def submit_payment_request(
    invoice_id: str,
    data: PaymentRequestCreate,
    background_tasks: BackgroundTasks,
    current_client: Client = Depends(get_current_client),
    portal_service: ClientPortalService = Depends(get_portal_service),
    request_service: PaymentRequestService = Depends(get_payment_request_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    """Claim a payment; nothing moves until the business approves it"""
    client_ids = await portal_service.peer_ids(current_client)
    request = await request_service.submit(invoice_id, data, current_client, client_ids)

    background_tasks.add_task(
        events.publish_payment_request_submitted,
        request_id=request.id,
        invoice_id=request.invoice_id,
        client_id=request.client_id,
        amount=str(request.amount),
    )
    return PaymentRequestEnvelope(
        message="Payment request submitted",
        request=PaymentRequestResponse.model_validate(request),
    )


@router.get("/payment-requests", response_model=PaymentRequestListResponse)
async def client_payment_requests(
    current_client: Client = Depends(get_current_client),
    request_service: PaymentRequestService = Depends(get_payment_request_service),
):
    rows = await request_service.list_for_client(current_client.id)
    return PaymentRequestListResponse(requests=[to_response(row) for row in rows])
