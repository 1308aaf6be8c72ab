"""Exceptions for Discord message delivery."""


class DiscordAPIError(Exception):
    """Error from the Discord API."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DeliveryUnavailable(DiscordAPIError):
    """Failure that halts the feed: network, timeout, 5xx, 429 or a bad bot token.

    Halts the feed's cycle; the undelivered event is retried on the next tick.
    """


class DeliveryRejected(DiscordAPIError):
    """Permanent failure for one destination: unknown channel, missing permission.

    The event is logged and skipped so a broken channel cannot wedge its feed.
    """
