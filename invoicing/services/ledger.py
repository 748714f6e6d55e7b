"""Per-client running totals.

Totals are changed with in-database increments inside the caller's
transaction, so concurrent writers for the same client never lose an update
and the ledger commits or rolls back together with the invoice change.
"""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from invoicing.core.logging import metrics_logger
from invoicing.models.client import Client
from invoicing.models.invoice import Invoice
from invoicing.schemas.client import LedgerDrift
from invoicing.services.calculator import ZERO, to_money

logger = structlog.get_logger()


class ClientLedger:
    """Maintains total_invoiced / total_paid / total_outstanding per client"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _apply(
        self,
        client_id: str,
        invoiced: Decimal = ZERO,
        paid: Decimal = ZERO,
        outstanding: Decimal = ZERO
    ) -> None:
        if not (invoiced or paid or outstanding):
            return
        await self.session.execute(
            update(Client)
            .where(Client.id == client_id)
            .values(
                total_invoiced=Client.total_invoiced + to_money(invoiced),
                total_paid=Client.total_paid + to_money(paid),
                total_outstanding=Client.total_outstanding + to_money(outstanding),
            )
            .execution_options(synchronize_session=False)
        )

    async def record_invoice_created(self, invoice: Invoice) -> None:
        await self._apply(
            invoice.client_id,
            invoiced=invoice.total_amount,
            paid=invoice.paid_amount,
            outstanding=invoice.total_amount - invoice.paid_amount,
        )

    async def record_invoice_deleted(self, invoice: Invoice) -> None:
        """Money already received stays in total_paid"""
        await self._apply(
            invoice.client_id,
            invoiced=-invoice.total_amount,
            outstanding=-invoice.remaining_amount,
        )

    async def record_payment(self, client_id: str, amount: Decimal) -> None:
        await self._apply(client_id, paid=amount, outstanding=-amount)

    async def record_invoice_adjusted(self, client_id: str, total_delta: Decimal) -> None:
        """A total change moves invoiced and outstanding by the same delta"""
        await self._apply(client_id, invoiced=total_delta, outstanding=total_delta)

    async def transfer_invoice(
        self,
        from_client_id: str,
        to_client_id: str,
        old_total: Decimal,
        new_total: Decimal,
        paid: Decimal
    ) -> None:
        """Move an invoice's whole contribution from one client to another"""
        await self._apply(
            from_client_id,
            invoiced=-old_total,
            paid=-paid,
            outstanding=-(old_total - paid),
        )
        await self._apply(
            to_client_id,
            invoiced=new_total,
            paid=paid,
            outstanding=new_total - paid,
        )

    async def reconcile(self, user_id: str, repair: bool = False) -> List[LedgerDrift]:
        """
        Recompute every client's totals from its invoices and report drift.

        Invoiced and outstanding must equal the sums over the client's
        invoices. Paid only has a lower bound: payments on invoices that were
        later deleted stay in total_paid, so it may exceed what the remaining
        invoices show but never fall below it.

        With ``repair`` invoiced and outstanding are overwritten with the
        recomputed values and paid is raised to its lower bound. Each drifting
        client is logged as a warning.
        """
        clients = (await self.session.execute(
            select(Client).where(Client.user_id == user_id)
        )).scalars().all()
        invoices = (await self.session.execute(
            select(Invoice.client_id, Invoice.total_amount, Invoice.paid_amount)
            .where(Invoice.user_id == user_id)
        )).all()

        actual = {client.id: [ZERO, ZERO] for client in clients}
        for client_id, total, paid in invoices:
            sums = actual.setdefault(client_id, [ZERO, ZERO])
            sums[0] += total
            sums[1] += paid

        drifts = []
        for client in clients:
            invoiced, paid = actual[client.id]
            recorded = (
                to_money(client.total_invoiced or ZERO),
                to_money(client.total_paid or ZERO),
                to_money(client.total_outstanding or ZERO),
            )
            expected = (to_money(invoiced), to_money(paid), to_money(invoiced - paid))
            if (
                recorded[0] == expected[0]
                and recorded[2] == expected[2]
                and recorded[1] >= expected[1]
            ):
                continue

            drift = LedgerDrift(
                client_id=client.id,
                recorded_invoiced=recorded[0],
                recorded_paid=recorded[1],
                recorded_outstanding=recorded[2],
                actual_invoiced=expected[0],
                actual_paid=expected[1],
                actual_outstanding=expected[2],
            )
            drifts.append(drift)
            logger.warning(
                "Client ledger drift detected",
                client_id=client.id,
                recorded=[str(v) for v in recorded],
                actual=[str(v) for v in expected],
                repaired=repair
            )

            if repair:
                await self.session.execute(
                    update(Client)
                    .where(Client.id == client.id)
                    .values(
                        total_invoiced=expected[0],
                        total_paid=max(recorded[1], expected[1]),
                        total_outstanding=expected[2],
                    )
                    .execution_options(synchronize_session=False)
                )

        metrics_logger.log_business_metric(
            metric_name="ledger_drift_count",
            value=len(drifts),
            tags={"user_id": user_id, "repaired": str(repair).lower()}
        )
        return drifts

    async def totals_for(self, client_id: str) -> Optional[Client]:
        return (await self.session.execute(
            select(Client).where(Client.id == client_id)
        )).scalar_one_or_none()
