"""
Business directory lookups.

`get_business(..., for_update=True)` takes a row lock on the business. The
booking write path does this first so that concurrent creations for one
business serialize even when no overlapping booking row exists yet to lock.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.models.business import Business
from app.repositories.mappers import map_business
from app.schemas.business import BusinessConfig


class BusinessDirectory:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    async def get_business(
        self,
        db: AsyncSession,
        business_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[BusinessConfig]:
        query = select(Business).where(Business.id == business_id)
        if for_update:
            query = query.with_for_update()

        result = await db.execute(query)
        row = result.scalar_one_or_none()
        return map_business(row, self.settings) if row else None
