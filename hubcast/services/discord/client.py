"""Discord delivery client.

Posts rendered messages to channels through Discord's REST API directly via
httpx (no gateway connection, no SDK). Transient failures are retried here
with exponential backoff; what survives the last attempt is raised as
DeliveryUnavailable for the poller to act on.
"""

import asyncio
import logging

import httpx

from hubcast.config import settings
from hubcast.core.credentials import AppCredentials
from hubcast.services.discord.exceptions import DeliveryRejected, DeliveryUnavailable
from hubcast.services.events.types import RenderedMessage

logger = logging.getLogger(__name__)

DISCORD_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "DiscordBot (https://github.com/hubcast/hubcast, 0.1.0)",
}

# Rate-limit waits longer than this are not slept through inside a poll cycle
MAX_RATE_LIMIT_WAIT = 60.0

REJECTED_STATUSES = {400, 403, 404}


class DiscordDeliveryClient:
    """Send messages to Discord channels with bounded retry."""

    def __init__(
        self,
        credentials: AppCredentials,
        base_url: str | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.discord_api_url).rstrip("/")
        self.max_attempts = max(1, max_attempts or settings.delivery_max_attempts)
        self.base_delay = (
            base_delay if base_delay is not None else settings.delivery_base_delay_seconds
        )
        self.timeout = timeout or settings.send_timeout_seconds
        self._headers = {
            **DISCORD_HEADERS,
            "Authorization": f"Bot {credentials.discord_token}",
        }
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=5.0))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def send(self, message: RenderedMessage) -> None:
        """
        Post one message to its channel.

        Raises:
            DeliveryRejected: 400/403/404 (or any other non-retryable 4xx),
                raised on the first occurrence
            DeliveryUnavailable: Network error, timeout, 429 or 5xx on every
                one of the allowed attempts; 401 (bad bot token) at once
        """
        url = f"{self.base_url}/channels/{message.channel_id}/messages"
        payload = {"content": message.body}
        last_error: DeliveryUnavailable | None = None

        for attempt in range(self.max_attempts):
            delay = self.base_delay * 2**attempt
            try:
                response = await self._get_client().post(url, json=payload, headers=self._headers)
            except httpx.TimeoutException:
                last_error = DeliveryUnavailable(
                    f"Timed out posting to channel {message.channel_id}"
                )
            except httpx.RequestError as e:
                last_error = DeliveryUnavailable(
                    f"Request failed posting to channel {message.channel_id}: {e}"
                )
            else:
                if response.is_success:
                    logger.info(
                        f"[discord] Delivered event {message.event_id} "
                        f"to channel {message.channel_id}"
                    )
                    return

                status = response.status_code
                if status == 429:
                    retry_after = _retry_after(response)
                    last_error = DeliveryUnavailable(
                        f"Rate limited by Discord (retry after {retry_after}s)", 429
                    )
                    if retry_after > MAX_RATE_LIMIT_WAIT:
                        logger.warning(
                            f"[discord] Rate limit wait of {retry_after}s exceeds "
                            f"{MAX_RATE_LIMIT_WAIT}s, giving up on event {message.event_id}"
                        )
                        raise last_error
                    delay = retry_after
                elif status == 401:
                    # A bad bot token breaks every channel; do not skip past the event
                    logger.error(
                        f"[discord] Bot token rejected (HTTP 401) posting event {message.event_id}"
                    )
                    raise DeliveryUnavailable("Discord rejected the bot token: 401", status)
                elif status >= 500:
                    last_error = DeliveryUnavailable(f"Discord API error: {status}", status)
                else:
                    logger.error(
                        f"[discord] HTTP {status} posting event {message.event_id} "
                        f"to channel {message.channel_id}: {response.text[:500]}"
                    )
                    reason = (
                        f"Discord rejected message: {status}"
                        if status in REJECTED_STATUSES
                        else f"Discord API error: {status}"
                    )
                    raise DeliveryRejected(reason, status)

            if attempt < self.max_attempts - 1:
                logger.warning(
                    f"[discord] {last_error} (attempt {attempt + 1}/{self.max_attempts}), "
                    f"retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"[discord] Delivery of event {message.event_id} failed after "
                    f"{self.max_attempts} attempts: {last_error}"
                )

        if last_error is None:
            raise DeliveryUnavailable(f"No delivery attempt made for event {message.event_id}")
        raise last_error


def _retry_after(response: httpx.Response) -> float:
    """Seconds to wait from a 429, preferring the JSON body's precise value."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("retry_after"), int | float):
        return float(body["retry_after"])
    try:
        return float(response.headers.get("Retry-After", 1.0))
    except ValueError:
        return 1.0
