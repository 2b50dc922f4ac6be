"""Subscription repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import SubscriptionStatusEnum
from app.modules.subscriptions.models import Subscription


class SubscriptionsRepository:
    """DB access methods for subscriptions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_subscription(
        self,
        parent_id: UUID,
        tutor_id: UUID,
        course_title: str,
        session_duration_minutes: int,
    ) -> Subscription:
        subscription = Subscription(
            parent_id=parent_id,
            tutor_id=tutor_id,
            course_title=course_title,
            session_duration_minutes=session_duration_minutes,
            status=SubscriptionStatusEnum.ACTIVE,
        )
        self.session.add(subscription)
        await self.session.flush()
        return subscription

    async def get_subscription_by_id(self, subscription_id: UUID) -> Subscription | None:
        stmt = (
            select(Subscription)
            .options(selectinload(Subscription.tutor))
            .where(Subscription.id == subscription_id)
        )
        return await self.session.scalar(stmt)
