"""Client management endpoints"""

from math import ceil
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse
import structlog

from invoicing.api.deps import get_client_service, get_current_business, get_event_bridge, get_queries
from invoicing.models.user import User
from invoicing.schemas.client import (
    ClientCreate,
    ClientEnvelope,
    ClientListResponse,
    ClientResponse,
    ClientStats,
    ClientUpdate,
    ReconcileResponse,
)
from invoicing.schemas.common import MessageResponse
from invoicing.services.aws.event_bridge import EventBridgeService
from invoicing.services.client_service import ClientService
from invoicing.services.queries import InvoiceQueries

router = APIRouter()
logger = structlog.get_logger()


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: Optional[str] = Query(None, description="Search name, email, company, phone or tax id"),
    status_filter: str = Query("active", alias="status", pattern="^(active|inactive|all)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    clients, total = await client_service.list_clients(
        current_user.id, search=search, status=status_filter, page=page, limit=limit
    )
    return ClientListResponse(
        clients=[ClientResponse.model_validate(c) for c in clients],
        total=total,
        total_pages=ceil(total / limit),
        current_page=page,
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_ledgers(
    background_tasks: BackgroundTasks,
    repair: bool = Query(False, description="Overwrite drifting totals with recomputed ones"),
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
    events: EventBridgeService = Depends(get_event_bridge),
):
    """Check every client ledger of the business against its invoices"""
    checked, drifts = await client_service.reconcile(current_user.id, repair=repair)
    if drifts:
        background_tasks.add_task(
            events.publish_ledger_drift,
            user_id=current_user.id,
            drifts=[d.model_dump(mode="json") for d in drifts],
            repaired=repair,
        )
    return ReconcileResponse(checked=checked, repaired=repair, drifts=drifts)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    client = await client_service.get_client(client_id, current_user.id)
    return ClientResponse.model_validate(client)


@router.post("", response_model=ClientEnvelope, status_code=201)
async def create_client(
    data: ClientCreate,
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    """Create a client; an existing client with the same email is revived instead"""
    client, revived = await client_service.create_client(data, current_user.id)
    if revived:
        envelope = ClientEnvelope(message="Client updated successfully", client=ClientResponse.model_validate(client))
        return JSONResponse(status_code=200, content=envelope.model_dump(mode="json"))
    return ClientEnvelope(message="Client created successfully", client=ClientResponse.model_validate(client))


@router.put("/{client_id}", response_model=ClientEnvelope)
async def update_client(
    client_id: str,
    data: ClientUpdate,
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    client = await client_service.update_client(client_id, data, current_user.id)
    return ClientEnvelope(message="Client updated successfully", client=ClientResponse.model_validate(client))


@router.delete("/{client_id}", response_model=MessageResponse)
async def delete_client(
    client_id: str,
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    deactivated = await client_service.delete_client(client_id, current_user.id)
    if deactivated:
        return MessageResponse(message="Client has invoices and was deactivated")
    return MessageResponse(message="Client deleted successfully")


@router.delete("/{client_id}/credentials", response_model=ClientEnvelope)
async def remove_credentials(
    client_id: str,
    current_user: User = Depends(get_current_business),
    client_service: ClientService = Depends(get_client_service),
):
    client = await client_service.remove_credentials(client_id, current_user.id)
    return ClientEnvelope(message="Client portal access removed", client=ClientResponse.model_validate(client))


@router.get("/{client_id}/stats", response_model=ClientStats)
async def client_stats(
    client_id: str,
    current_user: User = Depends(get_current_business),
    queries: InvoiceQueries = Depends(get_queries),
):
    return await queries.client_stats(client_id, current_user.id)
