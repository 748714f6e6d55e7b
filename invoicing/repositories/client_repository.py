"""Client Repository for database operations"""

from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.models.client import Client
from invoicing.models.enums import ClientStatus


class ClientRepository:
    """Repository for client-related database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, client: Client) -> Client:
        self.session.add(client)
        await self.session.flush()
        return client

    async def get(self, client_id: str) -> Optional[Client]:
        result = await self.session.execute(select(Client).where(Client.id == client_id))
        return result.scalar_one_or_none()

    async def get_for_business(self, client_id: str, user_id: str) -> Optional[Client]:
        """Get a client only if it belongs to the business"""
        result = await self.session.execute(
            select(Client).where(Client.id == client_id, Client.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def refresh(self, client: Client) -> Client:
        """Reload a client after in-database ledger increments"""
        await self.session.refresh(client)
        return client

    async def get_by_email(
        self,
        user_id: str,
        email: str,
        exclude_id: Optional[str] = None
    ) -> Optional[Client]:
        """Get client by email within a business"""
        query = select(Client).where(Client.user_id == user_id, Client.email == email.lower())
        if exclude_id:
            query = query.where(Client.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def find_all_by_email(self, email: str) -> List[Client]:
        """Every client record sharing an email across businesses, most recent first"""
        result = await self.session.execute(
            select(Client).where(Client.email == email.lower()).order_by(Client.updated_at.desc())
        )
        return list(result.scalars().all())

    async def peer_ids(self, client: Client) -> List[str]:
        """Ids of the business's client records sharing this client's email"""
        result = await self.session.execute(
            select(Client.id).where(Client.user_id == client.user_id, Client.email == client.email.lower())
        )
        ids = list(result.scalars().all())
        return ids or [client.id]

    async def tax_id_in_use(self, tax_id: str, exclude_id: Optional[str] = None) -> bool:
        query = select(func.count()).select_from(Client).where(Client.tax_id == tax_id)
        if exclude_id:
            query = query.where(Client.id != exclude_id)
        result = await self.session.execute(query)
        return (result.scalar() or 0) > 0

    async def search(
        self,
        user_id: str,
        search: Optional[str] = None,
        status: Optional[str] = ClientStatus.ACTIVE.value,
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[Client], int]:
        """Search clients by name, email, company, phone or tax id"""
        filters = [Client.user_id == user_id]
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(
                Client.name.ilike(pattern),
                Client.email.ilike(pattern),
                Client.company.ilike(pattern),
                Client.phone.ilike(pattern),
                Client.tax_id.ilike(pattern),
            ))
        if status and status != "all":
            filters.append(Client.status == ClientStatus(status))

        count_result = await self.session.execute(
            select(func.count()).select_from(Client).where(and_(*filters))
        )
        total = count_result.scalar() or 0

        result = await self.session.execute(
            select(Client).where(and_(*filters)).order_by(Client.created_at.desc(), Client.id).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_for_business(self, user_id: str) -> List[Client]:
        result = await self.session.execute(select(Client).where(Client.user_id == user_id))
        return list(result.scalars().all())

    async def delete(self, client: Client) -> None:
        await self.session.delete(client)
        await self.session.flush()
