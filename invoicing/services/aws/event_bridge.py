"""AWS EventBridge publisher for invoicing domain events"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError
import structlog

from invoicing.core.config import settings
from invoicing.core.exceptions import AWSServiceError
from invoicing.services.aws.base import AWSServiceBase

logger = structlog.get_logger()

EVENT_SOURCE_PREFIX = "invoicing"

# detail-type -> source suffix, so rules can match on either
EVENT_SOURCES = {
    "InvoiceCreated": "invoice",
    "PaymentApplied": "payment",
    "PaymentRequestSubmitted": "payment_request",
    "PaymentRequestReviewed": "payment_request",
    "LedgerDriftDetected": "ledger",
}


def build_entry(
    detail_type: str,
    detail: Dict[str, Any],
    event_bus_name: str,
    now: datetime,
    resources: Optional[List[str]] = None
) -> Dict[str, Any]:
    """One ``put_events`` entry; the detail gets an ISO ``occurred_at``"""
    entry = {
        "Source": f"{EVENT_SOURCE_PREFIX}.{EVENT_SOURCES[detail_type]}",
        "DetailType": detail_type,
        "Detail": json.dumps({**detail, "occurred_at": now.isoformat()}, default=str),
        "EventBusName": event_bus_name,
        "Time": now,
    }
    if resources:
        entry["Resources"] = resources
    return entry


class EventBridgeService(AWSServiceBase):
    """
    Publishes events after the business transaction has committed.

    Disabled instances log and return False. Failures are logged and never
    propagate, since the state change they describe is already durable.
    """

    def __init__(self, enabled: bool = False, event_bus_name: str = "invoicing-events", client: Any = None):
        super().__init__("events", client=client)
        self.enabled = enabled
        self.event_bus_name = event_bus_name

    async def initialize(self):
        if self.enabled:
            await super().initialize()

    async def publish(self, detail_type: str, detail: Dict[str, Any], resources: Optional[List[str]] = None) -> bool:
        if not self.enabled:
            logger.debug("Event publishing disabled", detail_type=detail_type)
            return False

        entry = build_entry(detail_type, detail, self.event_bus_name, datetime.now(timezone.utc), resources)
        try:
            await self.initialize()
            result = await self.call("put_events", Entries=[entry])
        except (AWSServiceError, BotoCoreError) as e:
            logger.error("Failed to publish event", detail_type=detail_type, error=str(e))
            return False

        if result.get("FailedEntryCount", 0) > 0:
            logger.error("Event rejected by EventBridge", detail_type=detail_type, failures=result.get("Entries"))
            return False

        logger.info("Event published", detail_type=detail_type, event_id=result["Entries"][0].get("EventId"))
        return True

    async def publish_invoice_created(
        self,
        invoice_id: str,
        client_id: str,
        invoice_number: str,
        amount: str,
        due_date: str
    ) -> bool:
        return await self.publish("InvoiceCreated", {
            "invoice_id": invoice_id,
            "client_id": client_id,
            "invoice_number": invoice_number,
            "amount": amount,
            "due_date": due_date,
        })

    async def publish_payment_applied(
        self,
        invoice_id: str,
        client_id: str,
        amount: str,
        status: str,
        source: str = "business"
    ) -> bool:
        """``source`` is ``business`` for direct payments, ``client_request`` for approved claims"""
        return await self.publish("PaymentApplied", {
            "invoice_id": invoice_id,
            "client_id": client_id,
            "amount": amount,
            "invoice_status": status,
            "origin": source,
        })

    async def publish_payment_request_submitted(
        self,
        request_id: str,
        invoice_id: str,
        client_id: str,
        amount: str
    ) -> bool:
        return await self.publish("PaymentRequestSubmitted", {
            "request_id": request_id,
            "invoice_id": invoice_id,
            "client_id": client_id,
            "amount": amount,
        })

    async def publish_payment_request_reviewed(
        self,
        request_id: str,
        invoice_id: str,
        decision: str,
        reviewed_by: str
    ) -> bool:
        return await self.publish("PaymentRequestReviewed", {
            "request_id": request_id,
            "invoice_id": invoice_id,
            "decision": decision,
            "reviewed_by": reviewed_by,
        })

    async def publish_ledger_drift(self, user_id: str, drifts: List[Dict[str, Any]], repaired: bool) -> bool:
        return await self.publish("LedgerDriftDetected", {
            "user_id": user_id,
            "drift_count": len(drifts),
            "drifts": drifts,
            "repaired": repaired,
        })


event_bridge_service = EventBridgeService(
    enabled=settings.EVENTS_ENABLED,
    event_bus_name=settings.EVENT_BUS_NAME
)
