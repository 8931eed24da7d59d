"""Push-channel synchronization between sessions."""

from src.sync.adapter import SyncChannelAdapter
from src.sync.hub import ChannelHub, Subscription

__all__ = ["ChannelHub", "Subscription", "SyncChannelAdapter"]
