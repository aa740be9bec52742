"""Peer synchronization over TCP.

Each connection runs a receive loop reading one envelope per line. Inbound
and outbound connections both open with an ``introduce``; a peer answers an
introduction or a sync request with its full truth set, and received truth
sets are merged into the local belief store by principle text.

Peers are not authenticated. Merging is best-effort gossip weighted by the
sender's declared trust weight.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from core.errors import DecodeError, NetworkBindError
from core.event_bus import PEER_CONNECTED, PEER_DISCONNECTED, TRUTHS_MERGED
from core.mind import Mind
from network.envelope import (
    DEFAULT_TRUST_WEIGHT,
    IntroducePayload,
    MessageType,
    NetworkEnvelope,
    RequestSyncPayload,
    ShareTruthsPayload,
    decode_envelope,
    decode_payload,
    encode_envelope,
    make_envelope,
)

logger = logging.getLogger("mw.peer")

DEFAULT_PORT = 44444
STREAM_LIMIT = 4 * 1024 * 1024


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class PeerConnection:
    """One open stream to a peer."""

    key: str
    remote: str
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    outbound: bool
    state: ConnectionState = ConnectionState.CONNECTED
    agent_id: str | None = None
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class PeerService:
    """Accepts and initiates peer connections for one mind."""

    def __init__(
        self,
        mind: Mind,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        trust_weight: float = DEFAULT_TRUST_WEIGHT,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        connect_retries: int = 3,
        retry_base_seconds: float = 0.5,
    ) -> None:
        self.mind = mind
        self.host = host
        self.port = port
        self.trust_weight = trust_weight
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.connect_retries = max(1, connect_retries)
        self.retry_base_seconds = retry_base_seconds
        self.peers: dict[str, PeerConnection] = {}
        self.known_peers: dict[str, datetime] = {}
        self._server: asyncio.AbstractServer | None = None

    @property
    def listening(self) -> bool:
        return self._server is not None

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> bool:
        """Bind the listener. A bind failure disables networking and returns ``False``."""
        try:
            self._server = await asyncio.start_server(
                self._accept, self.host, self.port, limit=STREAM_LIMIT
            )
        except OSError as exc:
            error = NetworkBindError(f"Could not listen on {self.host}:{self.port}: {exc}")
            logger.warning("Networking disabled: %s", error)
            self._server = None
            return False
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info("Network listener ready on port %d", self.port)
        return True

    async def stop(self) -> None:
        """Cancel the listener and every open connection."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        connections = list(self.peers.values())
        for conn in connections:
            if conn.task is not None and conn.task is not asyncio.current_task():
                conn.task.cancel()
        for conn in connections:
            if conn.task is not None and conn.task is not asyncio.current_task():
                try:
                    await conn.task
                except asyncio.CancelledError:
                    pass
            await self._close(conn)
        self.peers.clear()

    # ── Connections ──────────────────────────────────────────────────

    async def connect(self, host: str, port: int) -> PeerConnection | None:
        """Open an outbound connection, retrying with backoff; ``None`` if all attempts fail."""
        for attempt in range(1, self.connect_retries + 1):
            try:
                opening = asyncio.open_connection(host, port, limit=STREAM_LIMIT)
                if self.connect_timeout is not None:
                    reader, writer = await asyncio.wait_for(opening, self.connect_timeout)
                else:
                    reader, writer = await opening
            except (OSError, asyncio.TimeoutError) as exc:
                if attempt == self.connect_retries:
                    logger.warning("Could not connect to %s:%d: %s", host, port, exc)
                    return None
                wait = self.retry_base_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Connect to %s:%d failed (attempt %d/%d). Retrying in %.2fs",
                    host,
                    port,
                    attempt,
                    self.connect_retries,
                    wait,
                )
                await asyncio.sleep(wait)
                continue
            return await self._register(reader, writer, outbound=True)
        return None

    async def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        conn = await self._register(reader, writer, outbound=False)
        logger.info("Accepted new connection from %s", conn.remote)

    async def _register(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        outbound: bool,
    ) -> PeerConnection:
        peername = writer.get_extra_info("peername")
        remote = f"{peername[0]}:{peername[1]}" if peername else "unknown"
        conn = PeerConnection(
            key=str(uuid.uuid4()),
            remote=remote,
            reader=reader,
            writer=writer,
            outbound=outbound,
        )
        self.peers[conn.key] = conn
        conn.task = asyncio.create_task(self._receive_loop(conn), name=f"mw-peer-{conn.key[:8]}")
        self.mind.event_bus.emit(PEER_CONNECTED, {"peer": conn.key, "remote": remote, "outbound": outbound})
        await self.send(conn, self._introduce_envelope())
        return conn

    async def _close(self, conn: PeerConnection) -> None:
        if conn.state == ConnectionState.CLOSED:
            return
        conn.state = ConnectionState.CLOSED
        self.peers.pop(conn.key, None)
        conn.writer.close()
        try:
            await conn.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
        self.mind.event_bus.emit(PEER_DISCONNECTED, {"peer": conn.key, "agent_id": conn.agent_id})
        logger.info("Connection to %s closed", conn.remote)

    async def _read_line(self, conn: PeerConnection) -> bytes:
        if self.read_timeout is None:
            return await conn.reader.readline()
        return await asyncio.wait_for(conn.reader.readline(), self.read_timeout)

    async def _receive_loop(self, conn: PeerConnection) -> None:
        try:
            while True:
                line = await self._read_line(conn)
                if not line:
                    break
                if not line.strip():
                    continue
                try:
                    envelope = decode_envelope(line)
                except DecodeError as exc:
                    logger.warning("Failed to decode inbound envelope from %s: %s", conn.remote, exc)
                    continue
                await self.handle_envelope(envelope, conn)
        except (ConnectionError, OSError, ValueError, asyncio.TimeoutError) as exc:
            logger.warning("Connection to %s failed: %s", conn.remote, exc)
        except Exception:
            logger.exception("Unexpected error handling traffic from %s", conn.remote)
        finally:
            await self._close(conn)

    # ── Messages ─────────────────────────────────────────────────────

    async def send(self, conn: PeerConnection, envelope: NetworkEnvelope) -> bool:
        if conn.state == ConnectionState.CLOSED:
            return False
        try:
            conn.writer.write(encode_envelope(envelope))
            await conn.writer.drain()
        except (ConnectionError, OSError) as exc:
            logger.warning("Send to %s failed: %s", conn.remote, exc)
            return False
        return True

    async def handle_envelope(self, envelope: NetworkEnvelope, conn: PeerConnection) -> None:
        logger.info("Received %s from %s", envelope.type.value, envelope.from_agent_id)
        seen_at = envelope.timestamp
        if seen_at.tzinfo is None:
            seen_at = seen_at.replace(tzinfo=UTC)
        self.known_peers[envelope.from_agent_id] = seen_at
        conn.agent_id = envelope.from_agent_id

        if envelope.type == MessageType.INTRODUCE:
            try:
                intro = decode_payload(envelope, IntroducePayload)
                logger.info("Peer introduced: %s [%s] - %s", intro.identity_label, intro.id, intro.telos)
            except DecodeError as exc:
                logger.warning("Ignoring introduce payload: %s", exc)
            await self.share_truths(conn)
        elif envelope.type == MessageType.SHARE_TRUTHS:
            try:
                shared = decode_payload(envelope, ShareTruthsPayload)
            except DecodeError as exc:
                logger.warning("Dropping shareTruths: %s", exc)
                return
            # The store lock can be held for a whole cycle; keep the loop free meanwhile.
            added = await asyncio.to_thread(
                self.mind.merge_external_truths, shared.truths, shared.trust_weight
            )
            self.mind.event_bus.emit(
                TRUTHS_MERGED,
                {"from": envelope.from_agent_id, "received": len(shared.truths), "added": added},
            )
        elif envelope.type == MessageType.REQUEST_SYNC:
            # The "since" filter is not applied; the full truth set is sent.
            await self.share_truths(conn)
        elif envelope.type == MessageType.ACCEPT_SYNC:
            logger.info("Sync accepted by %s", envelope.from_agent_id)
        elif envelope.type == MessageType.PEER_PING:
            pass

    def _introduce_envelope(self) -> NetworkEnvelope:
        with self.mind.store.lock:
            identity = self.mind.self_concept.identity
        payload = IntroducePayload(id=self.mind.genesis_id, identity_label=identity, telos=self.mind.telos)
        return make_envelope(self.mind.genesis_id, MessageType.INTRODUCE, payload)

    async def share_truths(self, conn: PeerConnection) -> bool:
        payload = ShareTruthsPayload(truths=self.mind.list_truths(), trust_weight=self.trust_weight)
        return await self.send(conn, make_envelope(self.mind.genesis_id, MessageType.SHARE_TRUTHS, payload))

    async def request_sync(self, conn: PeerConnection, since: datetime | None = None) -> bool:
        payload = RequestSyncPayload(since=since)
        return await self.send(conn, make_envelope(self.mind.genesis_id, MessageType.REQUEST_SYNC, payload))

    async def ping(self, conn: PeerConnection) -> bool:
        return await self.send(conn, make_envelope(self.mind.genesis_id, MessageType.PEER_PING))

    async def broadcast_introduce(self) -> int:
        """Send an introduction to every open connection; return how many were sent."""
        envelope = self._introduce_envelope()
        sent = 0
        for conn in list(self.peers.values()):
            if await self.send(conn, envelope):
                sent += 1
        return sent

    def describe_peers(self) -> list[dict[str, Any]]:
        now = datetime.now(UTC)
        rows: list[dict[str, Any]] = []
        for conn in self.peers.values():
            last_seen = self.known_peers.get(conn.agent_id) if conn.agent_id else None
            rows.append(
                {
                    "key": conn.key,
                    "remote": conn.remote,
                    "agent_id": conn.agent_id,
                    "outbound": conn.outbound,
                    "seconds_since_seen": (now - last_seen).total_seconds() if last_seen else None,
                }
            )
        return rows
