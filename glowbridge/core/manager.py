"""Connection lifecycle: discovery queue, serialized negotiation, sessions.

A single :class:`ConnectionManager` owns the pending queue, the in-flight
attempt and the unique-id to session map. All of it is mutated on the event
loop thread only. The in-flight attempt is recorded synchronously before the
negotiation task is created, so at most one negotiation runs at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, Protocol

from glowbridge.core.errors import GlowbridgeError, NegotiationError, TransportError
from glowbridge.core.model import (
    DiscoveredPeripheral,
    NegotiationFailure,
    NegotiationStage,
    PendingConnection,
)
from glowbridge.core.registry import DeviceRegistry
from glowbridge.core.session import DeviceSession
from glowbridge.transports.base import Characteristic, Radio

LOGGER = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_KEEP_ALIVE_INTERVAL_S = 2.0


class Announcer(Protocol):
    def announce(self, session: DeviceSession) -> None:
        """Make a freshly connected device known to the hub."""


@dataclass(eq=False)
class _Attempt:
    pending: PendingConnection
    stage: NegotiationStage = NegotiationStage.IDLE
    dropped: bool = False
    session: DeviceSession | None = None

    @property
    def unique_id(self) -> str:
        return self.pending.config.unique_id


class ConnectionManager:
    def __init__(
        self,
        registry: DeviceRegistry,
        radio: Radio,
        *,
        announcer: Announcer | None = None,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
        keep_alive_interval_s: float = DEFAULT_KEEP_ALIVE_INTERVAL_S,
    ) -> None:
        self.registry = registry
        self.radio = radio
        self.announcer = announcer
        self.connect_timeout_s = connect_timeout_s
        self.keep_alive_interval_s = keep_alive_interval_s
        self._queue: deque[PendingConnection] = deque()
        # Queued or negotiating.
        self._awaiting: set[str] = set()
        self._sessions: dict[str, DeviceSession] = {}
        self._attempt: _Attempt | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def in_flight(self) -> bool:
        return self._attempt is not None

    @property
    def stage(self) -> NegotiationStage:
        return self._attempt.stage if self._attempt else NegotiationStage.IDLE

    @property
    def negotiating_id(self) -> str | None:
        return self._attempt.unique_id if self._attempt else None

    def session(self, unique_id: str) -> DeviceSession | None:
        return self._sessions.get(unique_id)

    def sessions(self) -> list[DeviceSession]:
        return list(self._sessions.values())

    def pending_ids(self) -> list[str]:
        return [pending.config.unique_id for pending in self._queue]

    async def start(self) -> None:
        await self._start_scan()

    def on_discovered(self, peripheral: DiscoveredPeripheral) -> None:
        if self._closed:
            return
        config = self.registry.resolve_config(peripheral.address)
        if config is None:
            return
        if config.unique_id in self._sessions or config.unique_id in self._awaiting:
            return
        profile = self.registry.resolve_profile(peripheral.name)
        if profile is None:
            return

        LOGGER.info("Found device: %s (%s) as %s", config.name, peripheral.address, profile.id)
        self._enqueue(PendingConnection(peripheral=peripheral, config=config, profile=profile))
        self._advance()

    def _enqueue(self, pending: PendingConnection) -> None:
        unique_id = pending.config.unique_id
        if unique_id in self._awaiting:
            return
        self._awaiting.add(unique_id)
        self._queue.append(pending)

    def _advance(self) -> None:
        if self._closed or self._attempt is not None or not self._queue:
            return
        attempt = _Attempt(pending=self._queue.popleft())
        self._attempt = attempt
        self._spawn(self._run_attempt(attempt), name=f"negotiate-{attempt.unique_id}")

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _resume_scanning(self) -> None:
        if not self._closed:
            self._spawn(self._start_scan(), name="scan")

    async def _start_scan(self) -> None:
        try:
            await self.radio.start_scan(self.on_discovered)
        except TransportError as exc:
            LOGGER.error("Could not start scanning: %s", exc)

    async def _run_attempt(self, attempt: _Attempt) -> None:
        pending = attempt.pending
        try:
            characteristic = await self._negotiate(attempt)
        except NegotiationError as exc:
            attempt.stage = NegotiationStage.FAILED
            LOGGER.warning("Negotiation with %s failed: %s", pending.config.name, exc)
            await self._quiet_disconnect(pending.peripheral)
        except asyncio.CancelledError:
            attempt.stage = NegotiationStage.FAILED
            await self._quiet_disconnect(pending.peripheral)
            raise
        else:
            self._establish(attempt, characteristic)
        finally:
            self._awaiting.discard(attempt.unique_id)
            if self._attempt is attempt:
                self._attempt = None
            self._advance()
            self._resume_scanning()

    async def _negotiate(self, attempt: _Attempt) -> Characteristic:
        peripheral = attempt.pending.peripheral
        endpoints = attempt.pending.profile.endpoints

        attempt.stage = NegotiationStage.CONNECTING
        try:
            await asyncio.wait_for(
                self.radio.connect(peripheral, lambda: self._on_disconnect(attempt)),
                timeout=self.connect_timeout_s,
            )
        except asyncio.TimeoutError:
            raise NegotiationError(
                NegotiationFailure.CONNECT_TIMEOUT,
                f"no connection after {self.connect_timeout_s:g}s",
            ) from None
        except TransportError as exc:
            raise NegotiationError(NegotiationFailure.CONNECT_ERROR, str(exc)) from exc
        LOGGER.info("Connected to %s", attempt.pending.config.name)
        self._check_dropped(attempt)

        attempt.stage = NegotiationStage.DISCOVERING_SERVICES
        try:
            services = await self.radio.discover_services(peripheral, [endpoints.service_uuid])
        except TransportError as exc:
            raise NegotiationError(NegotiationFailure.SERVICE_DISCOVERY_ERROR, str(exc)) from exc
        if not services:
            raise NegotiationError(
                NegotiationFailure.SERVICE_DISCOVERY_ERROR,
                f"service {endpoints.service_uuid} not found",
            )
        self._check_dropped(attempt)

        attempt.stage = NegotiationStage.DISCOVERING_CHARACTERISTICS
        uuids = [endpoints.write_char_uuid]
        if endpoints.read_char_uuid:
            uuids.append(endpoints.read_char_uuid)
        try:
            characteristics = await self.radio.discover_characteristics(peripheral, services[0], uuids)
        except TransportError as exc:
            raise NegotiationError(NegotiationFailure.CHARACTERISTIC_DISCOVERY_ERROR, str(exc)) from exc
        write_char = next(
            (char for char in characteristics if char.uuid.lower() == endpoints.write_char_uuid),
            None,
        )
        if write_char is None:
            raise NegotiationError(
                NegotiationFailure.MISSING_WRITE_ENDPOINT,
                f"write characteristic {endpoints.write_char_uuid} not found",
            )
        self._check_dropped(attempt)

        attempt.stage = NegotiationStage.READY
        return write_char

    @staticmethod
    def _check_dropped(attempt: _Attempt) -> None:
        if attempt.dropped:
            raise NegotiationError(NegotiationFailure.DROPPED, "link lost during negotiation")

    def _establish(self, attempt: _Attempt, characteristic: Characteristic) -> None:
        pending = attempt.pending
        session = DeviceSession(
            config=pending.config,
            profile=pending.profile,
            peripheral=pending.peripheral,
            characteristic=characteristic,
            radio=self.radio,
        )
        attempt.session = session
        self._sessions[session.unique_id] = session
        self._awaiting.discard(session.unique_id)
        LOGGER.info("Session ready for %s (%s)", session.config.name, session.unique_id)

        if self.announcer is not None:
            try:
                self.announcer.announce(session)
            except GlowbridgeError as exc:
                LOGGER.error("Could not announce %s: %s", session.config.name, exc)
        session.start_keep_alive(self.keep_alive_interval_s)

    def _on_disconnect(self, attempt: _Attempt) -> None:
        session, attempt.session = attempt.session, None
        if session is None:
            if self._attempt is attempt:
                attempt.dropped = True
            return
        if self._sessions.get(session.unique_id) is not session:
            return

        LOGGER.info("%s disconnected", session.config.name)
        del self._sessions[session.unique_id]
        session.stop_keep_alive()
        if self._closed:
            return
        self._enqueue(
            PendingConnection(peripheral=session.peripheral, config=session.config, profile=session.profile)
        )
        self._advance()
        self._resume_scanning()

    async def _quiet_disconnect(self, peripheral: DiscoveredPeripheral) -> None:
        try:
            await self.radio.disconnect(peripheral)
        except TransportError as exc:
            LOGGER.debug("Disconnect of %s failed: %s", peripheral.address, exc)

    async def close(self) -> None:
        """Cancel pending work, drop every session and stop scanning."""
        self._closed = True
        self._queue.clear()
        self._awaiting.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for session in list(self._sessions.values()):
            session.stop_keep_alive()
            await self._quiet_disconnect(session.peripheral)
        self._sessions.clear()

        try:
            await self.radio.stop_scan()
        except TransportError as exc:
            LOGGER.debug("Stopping scan failed: %s", exc)
