"""Peer service tests over loopback TCP on ephemeral ports."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
import time
from collections.abc import Callable
from typing import Any

import pytest

from core.event_bus import TRUTHS_MERGED
from core.mind import Mind
from memory.types import AbstractTruth, SelfConcept
from network.background import PeerServiceThread
from network.envelope import MessageType, ShareTruthsPayload, encode_envelope, make_envelope
from network.peer_service import PeerService

GREETING = "The input pattern 'Hello' is an intentional external signal."
NUMERIC = "A numeric sequence appears in the data stream; may encode structured info."


def build_mind(genesis_id: str, *truths: tuple[str, float]) -> Mind:
    mind = Mind(self_concept=SelfConcept(identity=genesis_id.upper()), telos="Share", genesis_id=genesis_id)
    mind.store.add_truths(
        AbstractTruth(
            core_concept="Seed",
            supporting_frames={f"{genesis_id}-frame"},
            confidence=confidence,
            emergent_principle=principle,
        )
        for principle, confidence in truths
    )
    return mind


def confidence_of(mind: Mind, principle: str) -> float | None:
    truth = mind.store.find_by_principle(principle)
    return truth.confidence if truth is not None else None


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_two_instances_exchange_truths_on_introduction() -> None:
    mind_a = build_mind("alpha", (GREETING, 0.9))
    mind_b = build_mind("beta", (NUMERIC, 0.7))
    merges: list[dict[str, Any]] = []
    mind_b.event_bus.subscribe(TRUTHS_MERGED, merges.append)

    async def scenario() -> None:
        service_a = PeerService(mind_a, host="127.0.0.1", port=0)
        service_b = PeerService(mind_b, host="127.0.0.1", port=0)
        assert await service_a.start()
        assert await service_b.start()
        assert service_a.port != 0

        conn = await service_b.connect("127.0.0.1", service_a.port)
        assert conn is not None and conn.outbound

        await wait_until(
            lambda: confidence_of(mind_a, NUMERIC) is not None and confidence_of(mind_b, GREETING) is not None
        )
        await wait_until(lambda: "alpha" in service_b.known_peers and "beta" in service_a.known_peers)
        assert len(service_a.peers) == 1

        await service_b.stop()
        await wait_until(lambda: not service_a.peers)
        await service_a.stop()

    asyncio.run(scenario())

    assert confidence_of(mind_b, GREETING) == 0.9
    assert confidence_of(mind_a, NUMERIC) == 0.7
    assert mind_b.store.find_by_principle(GREETING).supporting_frames == {"alpha-frame"}
    assert merges[0] == {"from": "alpha", "received": 1, "added": 1}
    mind_a.close()
    mind_b.close()


def test_shared_principle_is_reinforced_on_both_sides() -> None:
    mind_a = build_mind("alpha", (GREETING, 0.5))
    mind_b = build_mind("beta", (GREETING, 0.5))

    async def scenario() -> None:
        service_a = PeerService(mind_a, host="127.0.0.1", port=0)
        service_b = PeerService(mind_b, host="127.0.0.1", port=0, trust_weight=0.6)
        await service_a.start()
        await service_b.start()
        await service_b.connect("127.0.0.1", service_a.port)
        await wait_until(lambda: confidence_of(mind_a, GREETING) != 0.5 and confidence_of(mind_b, GREETING) != 0.5)
        await service_b.stop()
        await service_a.stop()

    asyncio.run(scenario())

    for mind in (mind_a, mind_b):
        assert len(mind.list_truths()) == 1
        assert confidence_of(mind, GREETING) == pytest.approx(0.8)
        assert mind.store.find_by_principle(GREETING).supporting_frames == {"alpha-frame", "beta-frame"}
    mind_a.close()
    mind_b.close()


def test_request_sync_and_reintroduction_reinforce_up_to_cap() -> None:
    mind_a = build_mind("alpha", (GREETING, 0.9))
    mind_b = build_mind("beta")

    async def scenario() -> None:
        service_a = PeerService(mind_a, host="127.0.0.1", port=0)
        service_b = PeerService(mind_b, host="127.0.0.1", port=0)
        await service_a.start()
        conn = await service_b.connect("127.0.0.1", service_a.port)
        assert conn is not None
        await wait_until(lambda: confidence_of(mind_b, GREETING) == 0.9)

        assert await service_b.request_sync(conn)
        await wait_until(lambda: confidence_of(mind_b, GREETING) == 1.0)
        assert await service_b.broadcast_introduce() == 1
        assert await service_b.ping(conn)

        await service_b.stop()
        await service_a.stop()

    asyncio.run(scenario())

    assert len(mind_b.list_truths()) == 1
    assert confidence_of(mind_b, GREETING) == 1.0
    mind_a.close()
    mind_b.close()


def test_malformed_line_is_dropped_and_eof_closes_connection() -> None:
    mind = build_mind("alpha")

    async def scenario() -> None:
        service = PeerService(mind, host="127.0.0.1", port=0)
        await service.start()
        reader, writer = await asyncio.open_connection("127.0.0.1", service.port)
        await reader.readline()  # introduce from the listener

        writer.write(b"this is not json\n")
        writer.write(encode_envelope(make_envelope("raw-client", MessageType.PEER_PING)))
        await writer.drain()
        await wait_until(lambda: "raw-client" in service.known_peers)
        assert len(service.peers) == 1

        writer.close()
        await writer.wait_closed()
        await wait_until(lambda: not service.peers)
        await service.stop()

    asyncio.run(scenario())
    mind.close()


def test_request_sync_is_answered_with_full_truth_set() -> None:
    mind = build_mind("alpha", (GREETING, 0.9), (NUMERIC, 0.7))

    async def scenario() -> str:
        service = PeerService(mind, host="127.0.0.1", port=0)
        await service.start()
        reader, writer = await asyncio.open_connection("127.0.0.1", service.port)
        await reader.readline()
        writer.write(encode_envelope(make_envelope("raw-client", MessageType.REQUEST_SYNC)))
        await writer.drain()
        reply = await asyncio.wait_for(reader.readline(), 5.0)
        writer.close()
        await writer.wait_closed()
        await service.stop()
        return reply.decode("utf-8")

    reply = asyncio.run(scenario())
    assert '"shareTruths"' in reply
    assert GREETING in reply and NUMERIC in reply
    mind.close()


def test_bind_failure_disables_networking() -> None:
    mind = build_mind("alpha")
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        async def scenario() -> bool:
            service = PeerService(mind, host="127.0.0.1", port=port)
            started = await service.start()
            assert not service.listening
            return started

        assert asyncio.run(scenario()) is False
    mind.close()


def test_connect_gives_up_after_retries() -> None:
    mind = build_mind("alpha")
    port = free_port()

    async def scenario() -> object:
        service = PeerService(mind, connect_retries=2, retry_base_seconds=0.01)
        return await service.connect("127.0.0.1", port)

    assert asyncio.run(scenario()) is None
    mind.close()


def test_background_thread_hosts_service_for_sync_callers() -> None:
    mind_a = build_mind("alpha", (GREETING, 0.9))
    mind_b = build_mind("beta")
    host_a = PeerServiceThread(PeerService(mind_a, host="127.0.0.1", port=0))
    host_b = PeerServiceThread(PeerService(mind_b, host="127.0.0.1", port=0))
    try:
        assert host_a.start()
        assert host_b.start()
        assert host_b.connect("127.0.0.1", host_a.service.port)

        deadline = time.monotonic() + 5.0
        while confidence_of(mind_b, GREETING) is None and time.monotonic() < deadline:
            time.sleep(0.02)
        assert confidence_of(mind_b, GREETING) == 0.9

        peers = host_b.describe_peers()
        assert len(peers) == 1
        assert peers[0]["outbound"] is True
    finally:
        host_b.stop()
        host_a.stop()
    mind_a.close()
    mind_b.close()


def test_busy_store_does_not_stall_other_connections() -> None:
    mind = build_mind("alpha")
    held = threading.Event()
    release = threading.Event()

    def hold_store() -> None:
        with mind.store.lock:
            held.set()
            release.wait(5.0)

    holder = threading.Thread(target=hold_store)
    merges: list[dict[str, Any]] = []
    mind.event_bus.subscribe(TRUTHS_MERGED, merges.append)
    share = ShareTruthsPayload(
        truths=[AbstractTruth(core_concept="Seed", confidence=0.7, emergent_principle=NUMERIC)]
    )

    async def scenario() -> None:
        service = PeerService(mind, host="127.0.0.1", port=0)
        await service.start()
        reader_1, writer_1 = await asyncio.open_connection("127.0.0.1", service.port)
        reader_2, writer_2 = await asyncio.open_connection("127.0.0.1", service.port)
        await reader_1.readline()
        await reader_2.readline()
        holder.start()
        assert await asyncio.to_thread(held.wait, 5.0)

        writer_1.write(encode_envelope(make_envelope("sharer", MessageType.SHARE_TRUTHS, share)))
        await writer_1.drain()
        await wait_until(lambda: "sharer" in service.known_peers)
        writer_2.write(encode_envelope(make_envelope("pinger", MessageType.PEER_PING)))
        await writer_2.drain()
        await wait_until(lambda: "pinger" in service.known_peers, timeout=2.0)
        assert merges == []

        release.set()
        await wait_until(lambda: len(merges) == 1)
        for writer in (writer_1, writer_2):
            writer.close()
            await writer.wait_closed()
        await service.stop()

    try:
        asyncio.run(scenario())
    finally:
        release.set()
        if holder.is_alive():
            holder.join()
    assert confidence_of(mind, NUMERIC) == 0.7
    mind.close()


def test_unexpected_handler_error_is_logged_and_closes_connection(caplog: pytest.LogCaptureFixture) -> None:
    mind = build_mind("alpha")

    def failing_merge(truths: object, trust_weight: float) -> int:
        raise RuntimeError("merge exploded")

    mind.merge_external_truths = failing_merge  # type: ignore[method-assign]

    async def scenario() -> None:
        service = PeerService(mind, host="127.0.0.1", port=0)
        await service.start()
        reader, writer = await asyncio.open_connection("127.0.0.1", service.port)
        await reader.readline()
        empty_share = make_envelope("raw-client", MessageType.SHARE_TRUTHS, ShareTruthsPayload())
        writer.write(encode_envelope(empty_share))
        await writer.drain()
        await wait_until(lambda: not service.peers)
        assert await reader.read() == b""
        writer.close()
        await writer.wait_closed()
        await service.stop()

    with caplog.at_level(logging.ERROR, logger="mw.peer"):
        asyncio.run(scenario())

    errors = [record for record in caplog.records if record.levelno == logging.ERROR]
    assert errors and errors[0].exc_info is not None
    assert "merge exploded" in str(errors[0].exc_info[1])
    mind.close()
