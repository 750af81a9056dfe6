"""High-level async client for the smart-lock tag manager."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pysmartlock._mqtt import MqttMessage, SmartLockMqttRuntime
from pysmartlock.config import SmartLockConfig
from pysmartlock.exceptions import SmartLockClientError
from pysmartlock.ingestion.decode import decode_message
from pysmartlock.models.events import DeviceEventKind
from pysmartlock.models.state import Notice, OperationKind, TagSyncSnapshot
from pysmartlock.sync.issuer import CommandIssuer
from pysmartlock.sync.machine import Effects, TagSyncMachine

_logger = logging.getLogger(__name__)

ConfirmDelete = Callable[[str], bool | Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class SlotTimeout:
    """Queue item: the timeout for operation ``op_id`` elapsed."""

    operation: OperationKind
    op_id: int


@dataclass(frozen=True, slots=True)
class ConnectionChange:
    """Queue item: the transport connected or disconnected."""

    connected: bool


_QueueItem = MqttMessage | SlotTimeout | ConnectionChange


class SmartLockClient:
    """Async client that keeps a local view of the lock's tag list in sync.

    Inbound messages, connection changes and timeout firings all travel
    through one queue consumed by a single task, so state transitions never
    run concurrently.

    Usage::

        async with SmartLockClient(config, on_notice=print) as client:
            await client.wait_for_snapshot(timeout=10)
            await client.add_tag()
    """

    def __init__(
        self,
        config: SmartLockConfig,
        *,
        on_state_change: Callable[[TagSyncSnapshot], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
        confirm_delete: ConfirmDelete | None = None,
    ) -> None:
        self._config = config
        self._on_state_change = on_state_change
        self._on_notice = on_notice
        self._confirm_delete = confirm_delete
        self._machine = TagSyncMachine(
            add_timeout=config.add_timeout,
            delete_timeout=config.delete_timeout,
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[_QueueItem] | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._runtime: SmartLockMqttRuntime | None = None
        self._issuer: CommandIssuer | None = None
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._snapshot_waiters: list[asyncio.Future[TagSyncSnapshot]] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SmartLockClient:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._queue = asyncio.Queue()
        self._consumer = loop.create_task(self._consume(), name="pysmartlock-sync")
        runtime = SmartLockMqttRuntime(
            loop=loop,
            config=self._config,
            on_message=self._enqueue,
            on_connection_change=self._on_connection_change,
            logger=_logger,
        )
        self._issuer = CommandIssuer(
            transport=runtime,
            machine=self._machine,
            topic=self._config.topic_cmd,
            schedule_timeout=self._schedule_timeout,
        )
        self._runtime = runtime
        try:
            runtime.start()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        runtime = self._runtime
        self._runtime = None
        self._issuer = None
        if runtime is not None:
            runtime.stop()

        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        for waiter in self._snapshot_waiters:
            if not waiter.done():
                waiter.cancel()
        self._snapshot_waiters.clear()

        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
        self._queue = None
        self._loop = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._runtime is not None and self._runtime.connected

    @property
    def tags(self) -> tuple[str, ...]:
        return self._machine.tags

    def snapshot(self) -> TagSyncSnapshot:
        """Current state for a UI layer."""
        return self._machine.snapshot(connected=self.connected)

    async def wait_for_snapshot(self, timeout: float | None = None) -> TagSyncSnapshot | None:
        """Wait for the next tag list from the device.

        Returns ``None`` on timeout.
        """
        loop = self._require_loop()
        fut: asyncio.Future[TagSyncSnapshot] = loop.create_future()
        self._snapshot_waiters.append(fut)
        try:
            return await asyncio.wait_for(fut, timeout)
        except TimeoutError:
            return None
        finally:
            with contextlib.suppress(ValueError):
                self._snapshot_waiters.remove(fut)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def open_door(self) -> None:
        """Release the door. Raises ``SmartLockNotConnectedError`` when offline."""
        self._require_issuer().open_door()

    async def refresh_tags(self) -> None:
        """Request a fresh tag list from the device."""
        self._require_issuer().refresh()

    async def add_tag(self) -> None:
        """Start enrolment of a new tag.

        The device then waits for a card to be scanned; the outcome arrives
        as a tag list refresh or as a :class:`Notice`.
        """
        self._require_issuer().start_add()
        self._emit_state()

    async def delete_tag(self, tag_id: str, *, confirm: ConfirmDelete | None = None) -> bool:
        """Delete *tag_id* after operator confirmation.

        The confirmation comes from *confirm*, else from the client-level
        ``confirm_delete`` callable. With neither set, calling this method
        counts as the confirmation. Returns ``False`` when the operator
        declines; nothing is published in that case.
        """
        issuer = self._require_issuer()
        normalized = issuer.check_delete(tag_id)

        confirm_cb = confirm if confirm is not None else self._confirm_delete
        if confirm_cb is not None:
            answer = confirm_cb(normalized)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                _logger.debug("Deletion of tag %s declined by operator", normalized)
                return False
            # Confirmation may have awaited; the session may be gone by now.
            issuer = self._require_issuer()

        issuer.start_delete(normalized)
        self._emit_state()
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise SmartLockClientError("Client not started. Use 'async with SmartLockClient(...) as client:'")
        return self._loop

    def _require_issuer(self) -> CommandIssuer:
        if self._issuer is None:
            raise SmartLockClientError("Client not started. Use 'async with SmartLockClient(...) as client:'")
        return self._issuer

    def _enqueue(self, item: _QueueItem) -> None:
        queue = self._queue
        if queue is None:
            _logger.debug("Dropping %s received after shutdown", type(item).__name__)
            return
        queue.put_nowait(item)

    def _on_connection_change(self, connected: bool) -> None:
        self._enqueue(ConnectionChange(connected=connected))

    def _schedule_timeout(self, operation: OperationKind, op_id: int, delay: float) -> None:
        loop = self._require_loop()
        self._timers[op_id] = loop.call_later(delay, self._fire_timeout, operation, op_id)

    def _fire_timeout(self, operation: OperationKind, op_id: int) -> None:
        self._timers.pop(op_id, None)
        self._enqueue(SlotTimeout(operation=operation, op_id=op_id))

    async def _consume(self) -> None:
        queue = self._queue
        assert queue is not None  # noqa: S101
        while True:
            item = await queue.get()
            try:
                self._dispatch(item)
            except Exception:
                _logger.error("Failed to process %s", type(item).__name__, exc_info=True)
            finally:
                queue.task_done()

    def _dispatch(self, item: _QueueItem) -> None:
        if isinstance(item, ConnectionChange):
            _logger.debug("Connection state changed connected=%s", item.connected)
            self._emit_state()
            return

        if isinstance(item, SlotTimeout):
            self._run_effects(self._machine.expire(item.operation, item.op_id))
            return

        event = decode_message(
            item,
            events_topic=self._config.topic_events,
            tags_topic=self._config.topic_tags,
        )
        if event is None:
            return
        self._run_effects(self._machine.apply(event))
        if event.kind == DeviceEventKind.TAGS_SNAPSHOT:
            self._notify_snapshot()

    def _run_effects(self, effects: Effects) -> None:
        runtime = self._runtime
        for command in effects.commands:
            if runtime is None or not runtime.publish(self._config.topic_cmd, command):
                # The tag list is fetched again on the next connect.
                _logger.warning("Follow-up command %s dropped: transport unavailable", command)
        for notice in effects.notices:
            self._emit_notice(notice)
        if effects.state_changed:
            self._emit_state()

    def _notify_snapshot(self) -> None:
        if not self._snapshot_waiters:
            return
        snapshot = self.snapshot()
        waiters = self._snapshot_waiters
        self._snapshot_waiters = []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(snapshot)

    def _emit_state(self) -> None:
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(self.snapshot())
        except Exception:
            _logger.debug("on_state_change callback failed", exc_info=True)

    def _emit_notice(self, notice: Notice) -> None:
        _logger.warning("%s", notice.message)
        if self._on_notice is None:
            return
        try:
            self._on_notice(notice)
        except Exception:
            _logger.debug("on_notice callback failed", exc_info=True)
