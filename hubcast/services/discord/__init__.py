"""Discord delivery: `from hubcast.services.discord import DiscordDeliveryClient`."""

from hubcast.services.discord.client import DiscordDeliveryClient
from hubcast.services.discord.exceptions import (
    DeliveryRejected,
    DeliveryUnavailable,
    DiscordAPIError,
)

__all__ = [
    "DiscordDeliveryClient",
    "DiscordAPIError",
    "DeliveryRejected",
    "DeliveryUnavailable",
]
