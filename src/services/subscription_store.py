"""Read access to the subscriber -> channel relation."""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from src.services.user_store import store_connection


@dataclass(frozen=True)
class SubscriptionStats:
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class SubscriptionStore:
    """Aggregates over the ``subscriptions`` table."""

    async def get_stats(
        self, channel_id: UUID, viewer_id: Optional[UUID] = None
    ) -> SubscriptionStats:
        """Count a channel's subscribers and subscriptions in one round trip.

        Args:
            channel_id: The user whose channel is being viewed
            viewer_id: The authenticated caller, if any

        Returns:
            SubscriptionStats; is_subscribed is False for anonymous viewers
        """
        async with store_connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                    (SELECT COUNT(*) FROM subscriptions WHERE channel_id = $1) AS subscribers_count,
                    (SELECT COUNT(*) FROM subscriptions WHERE subscriber_id = $1) AS subscribed_to_count,
                    EXISTS (
                        SELECT 1 FROM subscriptions
                        WHERE channel_id = $1 AND subscriber_id = $2
                    ) AS is_subscribed
                """,
                channel_id,
                viewer_id,
            )

        return SubscriptionStats(
            subscribers_count=row["subscribers_count"],
            channels_subscribed_to_count=row["subscribed_to_count"],
            is_subscribed=bool(row["is_subscribed"]) if viewer_id is not None else False,
        )
