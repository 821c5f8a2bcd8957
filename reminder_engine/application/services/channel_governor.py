# ============================================================================
# SCOPE: APPLICATION LAYER (Reminder Engine)
# Description: Per-channel rate limiting, pacing and health tracking.
# ============================================================================
"""Channel Governor.

Single authority over outbound WhatsApp channels. It picks the channel for a
send, refuses sends that would risk a ban, enforces a random pause between
consecutive sends on the same channel and keeps each channel's health score.

Health score (0-100), recomputed over a rolling window of sends once enough
samples exist:

    delivery_rate * 0.4 + read_rate * 0.3 + response_rate * 0.3

where delivery = delivered / sent, read = read / delivered and
response = responses / read. Falling below the pause threshold blocks the
channel until someone resumes it, so selection rotates to the next channel.

Example:
    ```python
    governor = ChannelGovernor(channel_store, provider, AntiBlockConfig())
    await governor.load()
    channel = governor.select_channel(await channel_store.list_connected("reminders"))
    receipt = await governor.send(channel.id, "595981123456", "Hola!")
    ```
"""

import asyncio
import logging
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from reminder_engine.core.domain.exceptions import (
    ChannelNotFound,
    CutoffReached,
    NoChannelAvailable,
    RateLimited,
    TransportError,
)

from ...domain.entities.channel import Channel, SendResult
from ...domain.value_objects.channel_state import ConnectionState
from ...domain.value_objects.message import MessageStatus
from ..ports.channel_port import ChannelStore
from ..ports.messaging_port import MessagingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PacingProfile:
    """Random pause range between consecutive sends on one channel."""

    name: str
    min_seconds: float
    max_seconds: float


REMINDER_PACING = PacingProfile("reminder", 3.0, 5.0)
MANUAL_BULK_PACING = PacingProfile("manual_bulk", 30.0, 90.0)
CONVERSATIONAL_PACING = PacingProfile("conversational", 1.0, 3.0)


@dataclass
class AntiBlockConfig:
    """Configuration for channel anti-block protection."""

    daily_limit: int = 1000
    pause_threshold_health: int = 20
    health_window_size: int = 100
    health_min_samples: int = 20
    send_timeout_seconds: float = 20.0
    reminder_pacing: PacingProfile = REMINDER_PACING
    bulk_pacing: PacingProfile = MANUAL_BULK_PACING
    conversational_pacing: PacingProfile = CONVERSATIONAL_PACING


@dataclass(frozen=True)
class SendReceipt:
    channel_id: str
    external_message_id: str | None
    sent_at: datetime


@dataclass
class _DeliverySample:
    external_message_id: str | None
    delivered: bool
    read: bool = False
    responded: bool = False


@dataclass
class _ChannelSlot:
    channel: Channel
    samples: deque
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    state_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_send_at: float = 0.0


def _rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    return min(100.0, numerator * 100.0 / denominator)


class ChannelGovernor:
    """Rate limiter and health tracker for outbound channels.

    Sends on one channel are strictly sequential (send_lock, held through the
    pacing pause); counter and health mutations are serialized per channel
    (state_lock). Different channels proceed in parallel.
    """

    def __init__(
        self,
        channel_store: ChannelStore,
        provider: MessagingProvider,
        config: AntiBlockConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self._channel_store = channel_store
        self._provider = provider
        self.config = config or AntiBlockConfig()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._slots: dict[str, _ChannelSlot] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Track every channel known to the store. Returns the channel count."""
        channels = await self._channel_store.list_all()
        self.track(channels)
        logger.info(f"ChannelGovernor tracking {len(self._slots)} channel(s)")
        return len(self._slots)

    def track(self, channels: list[Channel]) -> list[Channel]:
        """Register channels and return the governor-owned instances.

        A channel already tracked keeps the governor's counters, health and
        state; the store's copy only fills in channels seen for the first time.
        """
        tracked = []
        for channel in channels:
            slot = self._slots.get(channel.id)
            if slot is None:
                slot = _ChannelSlot(channel=channel, samples=deque(maxlen=self.config.health_window_size))
                self._slots[channel.id] = slot
            tracked.append(slot.channel)
        return tracked

    def get_channel(self, channel_id: str) -> Channel:
        return self._slot(channel_id).channel

    def channel_for_instance(self, instance_id: str) -> Channel | None:
        for slot in self._slots.values():
            if slot.channel.external_instance_id == instance_id:
                return slot.channel
        return None

    def _slot(self, channel_id: str) -> _ChannelSlot:
        slot = self._slots.get(channel_id)
        if slot is None:
            raise ChannelNotFound(channel_id)
        return slot

    # ------------------------------------------------------------------
    # Selection and gating
    # ------------------------------------------------------------------

    def can_send(self, channel_id: str) -> bool:
        """Whether a send on the channel is currently allowed."""
        channel = self._slot(channel_id).channel
        if channel.connection_state != ConnectionState.CONNECTED:
            return False
        if channel.daily_message_count >= self.config.daily_limit:
            return False
        if channel.health_score < self.config.pause_threshold_health:
            return False
        return True

    def select_channel(self, candidates: list[Channel], purpose: str | None = None) -> Channel:
        """Connected candidate with the highest health score.

        Raises:
            NoChannelAvailable: No candidate is connected.
        """
        connected = [c for c in self.track(candidates) if c.is_connected]
        if not connected:
            raise NoChannelAvailable(purpose)
        return max(connected, key=lambda c: (c.health_score, -c.daily_message_count))

    def sendable_channels(self, candidates: list[Channel], purpose: str | None = None) -> list[Channel]:
        """Connected candidates allowed to send, healthiest first.

        Raises:
            NoChannelAvailable: No candidate is connected.
            RateLimited: Candidates are connected but none may send.
        """
        connected = [c for c in self.track(candidates) if c.is_connected]
        if not connected:
            raise NoChannelAvailable(purpose)
        sendable = [c for c in connected if self.can_send(c.id)]
        if not sendable:
            raise RateLimited(
                f"All {len(connected)} connected channel(s) are paused or at their daily limit"
            )
        return sorted(sendable, key=lambda c: (-c.health_score, c.daily_message_count))

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(
        self,
        channel_id: str,
        phone: str,
        text: str,
        *,
        pacing: PacingProfile | None = None,
        deadline_passed: Callable[[], bool] | None = None,
    ) -> SendReceipt:
        """Send a text through the channel, honoring gating, pacing and timeout.

        Args:
            channel_id: Tracked channel id.
            phone: Recipient phone digits.
            text: Message text.
            pacing: Pause profile applied after this send (reminder by default).
            deadline_passed: Checked once the pacing pause is over; when it
                returns True nothing is sent.

        Returns:
            SendReceipt with the provider's message id.

        Raises:
            RateLimited: The channel may not send right now.
            CutoffReached: ``deadline_passed`` returned True.
            TransportError: Provider failure or timeout.
        """
        slot = self._slot(channel_id)
        pacing = pacing or self.config.reminder_pacing

        async with slot.send_lock:
            self._ensure_can_send(slot)

            delay = slot.next_send_at - self._clock()
            if delay > 0:
                logger.debug(f"Channel {channel_id}: pacing {delay:.1f}s before next send")
                await self._sleep(delay)
                # Block or limit may have been reached during the pause
                self._ensure_can_send(slot)

            if deadline_passed is not None and deadline_passed():
                logger.info(f"Channel {channel_id}: send deadline passed, nothing sent")
                raise CutoffReached(channel_id)

            try:
                result = await asyncio.wait_for(
                    self._provider.send(slot.channel.external_instance_id, phone, text),
                    timeout=self.config.send_timeout_seconds,
                )
            except asyncio.TimeoutError:
                await self._record_outcome(slot, None, error="timeout")
                raise TransportError(
                    f"Send on channel {channel_id} timed out after {self.config.send_timeout_seconds}s",
                    channel_id=channel_id,
                ) from None
            except TransportError as e:
                await self._record_outcome(slot, None, error=e.message)
                raise
            except Exception as e:
                await self._record_outcome(slot, None, error=str(e))
                raise TransportError(f"Send on channel {channel_id} failed: {e}", channel_id=channel_id) from e
            finally:
                slot.next_send_at = self._clock() + self._rng.uniform(pacing.min_seconds, pacing.max_seconds)

            receipt = SendReceipt(
                channel_id=channel_id,
                external_message_id=result.external_message_id,
                sent_at=datetime.now(UTC),
            )
            await self._record_outcome(slot, receipt)
            return receipt

    def _ensure_can_send(self, slot: _ChannelSlot) -> None:
        if not self.can_send(slot.channel.id):
            channel = slot.channel
            raise RateLimited(
                f"Channel {channel.id} refused send (state={channel.connection_state.value}, "
                f"count={channel.daily_message_count}/{self.config.daily_limit}, health={channel.health_score})",
                channel_id=channel.id,
            )

    async def _record_outcome(self, slot: _ChannelSlot, receipt: SendReceipt | None, error: str | None = None):
        channel = slot.channel
        async with slot.state_lock:
            if receipt is not None:
                channel.daily_message_count += 1
                slot.samples.append(_DeliverySample(receipt.external_message_id, delivered=True))
            else:
                slot.samples.append(_DeliverySample(None, delivered=False))
            self._recompute_health(slot)

            await self._channel_store.record_send(
                channel.id,
                SendResult(
                    success=receipt is not None,
                    external_message_id=receipt.external_message_id if receipt else None,
                    error=error,
                    sent_at=receipt.sent_at if receipt else datetime.now(UTC),
                ),
            )
            await self._channel_store.save(channel)

        if receipt is None:
            logger.warning(f"Channel {channel.id}: send failed ({error})")

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def record_receipt(self, channel_id: str, external_message_id: str, status: MessageStatus) -> bool:
        """Apply a delivery/read receipt. Returns False if the message is outside the window."""
        slot = self._slot(channel_id)
        async with slot.state_lock:
            sample = next((s for s in slot.samples if s.external_message_id == external_message_id), None)
            if sample is None:
                return False
            if status == MessageStatus.DELIVERED:
                sample.delivered = True
            elif status == MessageStatus.READ:
                sample.delivered = True
                sample.read = True
            elif status == MessageStatus.FAILED:
                sample.delivered = False
            else:
                return True
            self._recompute_health(slot)
            await self._channel_store.save(slot.channel)
        return True

    async def record_response(self, channel_id: str) -> None:
        """Attribute a patient reply to the most recent unanswered send."""
        slot = self._slot(channel_id)
        async with slot.state_lock:
            for sample in reversed(slot.samples):
                if sample.delivered and not sample.responded:
                    sample.responded = True
                    sample.read = True
                    break
            else:
                return
            self._recompute_health(slot)
            await self._channel_store.save(slot.channel)

    def _recompute_health(self, slot: _ChannelSlot) -> None:
        samples = slot.samples
        if len(samples) < self.config.health_min_samples:
            return

        sent = len(samples)
        delivered = sum(1 for s in samples if s.delivered)
        read = sum(1 for s in samples if s.read)
        responded = sum(1 for s in samples if s.responded)

        score = int(_rate(delivered, sent) * 0.4 + _rate(read, delivered) * 0.3 + _rate(responded, read) * 0.3)
        channel = slot.channel
        channel.health_score = max(0, min(100, score))

        if (
            channel.health_score < self.config.pause_threshold_health
            and channel.connection_state == ConnectionState.CONNECTED
        ):
            channel.connection_state = ConnectionState.BLOCKED
            logger.warning(
                f"Channel {channel.id} paused: health {channel.health_score} "
                f"< {self.config.pause_threshold_health}"
            )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def update_connection_state(self, channel_id: str, state: ConnectionState) -> Channel:
        """Apply a provider connection update.

        A channel blocked for low health stays blocked until resumed.
        """
        slot = self._slot(channel_id)
        channel = slot.channel
        async with slot.state_lock:
            if channel.connection_state == ConnectionState.BLOCKED and state == ConnectionState.CONNECTED:
                logger.info(f"Channel {channel_id} reconnected but stays blocked until resumed")
                return channel
            if channel.connection_state != state:
                logger.info(f"Channel {channel_id}: {channel.connection_state.value} -> {state.value}")
                channel.connection_state = state
                await self._channel_store.save(channel)
        return channel

    async def resume(self, channel_id: str) -> Channel:
        """Manually un-pause a channel with a fresh health window."""
        slot = self._slot(channel_id)
        async with slot.state_lock:
            slot.samples.clear()
            slot.channel.health_score = 100
            slot.channel.connection_state = ConnectionState.CONNECTED
            await self._channel_store.save(slot.channel)
        logger.info(f"Channel {channel_id} resumed")
        return slot.channel

    async def reset_daily_counters(self, now: datetime | None = None) -> None:
        """Reset daily counters (local midnight job)."""
        now = now or datetime.now(UTC)
        for slot in self._slots.values():
            async with slot.state_lock:
                slot.channel.daily_message_count = 0
                slot.channel.daily_sent_reset_at = now
                await self._channel_store.save(slot.channel)
        logger.info(f"Daily counters reset for {len(self._slots)} channel(s)")

    def snapshot(self) -> list[dict]:
        """Channel health state for dashboards."""
        now = self._clock()
        result = []
        for slot in self._slots.values():
            data = slot.channel.to_dict()
            data.update(
                {
                    "can_send": self.can_send(slot.channel.id),
                    "daily_limit": self.config.daily_limit,
                    "health_samples": len(slot.samples),
                    "next_send_in_seconds": round(max(0.0, slot.next_send_at - now), 1),
                }
            )
            result.append(data)
        return result
