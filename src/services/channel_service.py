"""Public channel profile lookup."""

from typing import Optional
from uuid import UUID

import structlog

from src.models.result import ErrorKind, Ok, Result, fail
from src.models.user import ChannelProfile
from src.services.session_manager import store_errors_as_internal
from src.services.subscription_store import SubscriptionStore
from src.services.user_store import UserStore

logger = structlog.get_logger(__name__)


class ChannelService:
    def __init__(self, store: UserStore, subscriptions: SubscriptionStore):
        self.store = store
        self.subscriptions = subscriptions

    @store_errors_as_internal
    async def get_channel_profile(
        self, username: Optional[str], viewer_id: Optional[UUID] = None
    ) -> Result[ChannelProfile]:
        """Build a channel profile with subscriber/subscription counts.

        Args:
            username: Channel owner's username (case-insensitive)
            viewer_id: Authenticated caller, if any

        Returns:
            Ok(ChannelProfile) or Err NOT_FOUND for a blank or unknown username
        """
        if not username or not username.strip():
            return fail(ErrorKind.NOT_FOUND, "Username is missing")

        channel = await self.store.find_by_username(username.strip().lower())
        if channel is None:
            return fail(ErrorKind.NOT_FOUND, "Channel does not exist")

        stats = await self.subscriptions.get_stats(channel.id, viewer_id)

        logger.debug("channel_profile_loaded", channel_id=str(channel.id))
        return Ok(
            ChannelProfile(
                id=channel.id,
                username=channel.username,
                full_name=channel.full_name,
                email=channel.email,
                avatar=channel.avatar,
                cover_image=channel.cover_image,
                subscribers_count=stats.subscribers_count,
                channels_subscribed_to_count=stats.channels_subscribed_to_count,
                is_subscribed=stats.is_subscribed,
            )
        )
