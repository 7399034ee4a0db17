"""
Subscription records.
"""

from __future__ import annotations

import logging
import uuid

from database.models import Subscription, SubscriptionStatus
from database.session import async_session_factory

logger = logging.getLogger(__name__)


async def create_subscription(
    status: SubscriptionStatus,
    type: str,
    user_id: uuid.UUID,
) -> Subscription:
    """Insert a subscription in its own session and commit it."""
    subscription = Subscription(
        id=uuid.uuid4(),
        status=status,
        type=type,
        user_id=user_id,
    )
    async with async_session_factory() as session:
        session.add(subscription)
        await session.commit()

    logger.info("Created %s subscription %s for user %s", type, subscription.id, user_id)
    return subscription
