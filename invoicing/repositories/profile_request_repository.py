"""Profile Request Repository for database operations"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.models.enums import ProfileRequestStatus
from invoicing.models.profile_request import ProfileRequest


class ProfileRequestRepository:
    """Repository for profile request database operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, request: ProfileRequest) -> ProfileRequest:
        self.session.add(request)
        await self.session.flush()
        return request

    async def get_for_business(self, request_id: str, user_id: str) -> Optional[ProfileRequest]:
        result = await self.session.execute(
            select(ProfileRequest).where(
                ProfileRequest.id == request_id,
                ProfileRequest.business_user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_business(
        self,
        user_id: str,
        status: Optional[ProfileRequestStatus] = ProfileRequestStatus.PENDING
    ) -> List[ProfileRequest]:
        query = select(ProfileRequest).where(ProfileRequest.business_user_id == user_id)
        if status is not None:
            query = query.where(ProfileRequest.status == status)
        result = await self.session.execute(
            query.order_by(ProfileRequest.created_at.desc(), ProfileRequest.id)
        )
        return list(result.scalars().all())
