import asyncio
import json
from contextlib import asynccontextmanager

import pytest

from campus_messaging.client.live import LiveFeed, _frames, websocket_events
from campus_messaging.client.state import MessageState
from campus_messaging.errors import AuthError, TransportError

from conftest import ALICE, BOB, record


def event(kind, msg):
    return {"event": kind, "record": msg.model_dump(mode="json")}


class ScriptedConnector:
    """Each connect() plays the next script: a list of events, or an exception."""

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.connects = 0
        self.exhausted = asyncio.Event()

    def __call__(self):
        return self._session()

    @asynccontextmanager
    async def _session(self):
        self.connects += 1
        if not self.scripts:
            self.exhausted.set()
            await asyncio.Event().wait()  # block until cancelled
        script = self.scripts.pop(0)
        if isinstance(script, Exception):
            raise script

        async def events():
            for item in script:
                if isinstance(item, Exception):
                    raise item
                yield item

        yield events()


class Reconcile:
    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.snapshots.pop(0) if self.snapshots else []


async def run_until_exhausted(feed, connector):
    task = feed.start()
    await asyncio.wait_for(connector.exhausted.wait(), timeout=2)
    feed.close()
    await asyncio.gather(task, return_exceptions=True)


async def test_reconciles_before_applying_pushes():
    m1 = record("m1", BOB, ALICE, "missed while offline", at=1)
    m2 = record("m2", BOB, ALICE, "pushed", at=2)
    state = MessageState()
    connector = ScriptedConnector([event("INSERT", m2)])
    reconcile = Reconcile([m1])

    feed = LiveFeed(connector, state, reconcile, retry_delay=0)
    await run_until_exhausted(feed, connector)

    assert reconcile.calls == 1
    assert {m.id for m in state.all()} == {"m1", "m2"}


async def test_duplicate_pushes_are_merged_by_id():
    msg = record("m1", BOB, ALICE, "Hello")
    state = MessageState()
    seen = []
    connector = ScriptedConnector([event("INSERT", msg), event("INSERT", msg)])

    feed = LiveFeed(connector, state, Reconcile(), on_event=lambda e, changed: seen.append(changed), retry_delay=0)
    await run_until_exhausted(feed, connector)

    assert len(state) == 1
    assert seen == [True, False]


async def test_reconnect_after_drop_fetches_again():
    before = record("m1", BOB, ALICE, at=1)
    during_outage = record("m2", BOB, ALICE, at=2)
    state = MessageState()
    connector = ScriptedConnector(
        [event("INSERT", before), TransportError("connection reset")],
        TransportError("refused"),
        [],
    )
    reconcile = Reconcile([], [before, during_outage])

    feed = LiveFeed(connector, state, reconcile, retry_delay=0)
    await run_until_exhausted(feed, connector)

    assert connector.connects == 4
    assert reconcile.calls == 2
    assert feed.reconnects == 3
    assert {m.id for m in state.all()} == {"m1", "m2"}


async def test_malformed_and_pong_events_are_ignored():
    state = MessageState()
    feed = LiveFeed(ScriptedConnector(), state, Reconcile())

    assert feed.handle({"event": "PONG"}) is None
    assert feed.handle({"event": "INSERT", "record": {"id": "m1"}}) is None
    assert len(state) == 0


async def test_no_callbacks_after_close():
    msg = record("m1", BOB, ALICE)
    state = MessageState()
    seen = []
    feed = LiveFeed(ScriptedConnector(), state, Reconcile(), on_event=lambda e, changed: seen.append(e))

    feed.close()

    assert feed.handle(event("INSERT", msg)) is None
    assert seen == []
    assert len(state) == 0


class FakeSocket:
    def __init__(self, frames):
        self.frames = list(frames)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame


class SocketConnector(ScriptedConnector):
    """Like ScriptedConnector, but each script is a list of raw text frames."""

    @asynccontextmanager
    async def _session(self):
        self.connects += 1
        if not self.scripts:
            self.exhausted.set()
            await asyncio.Event().wait()
        yield _frames(FakeSocket(self.scripts.pop(0)))


async def test_undecodable_frames_are_skipped():
    msg = record("m1", BOB, ALICE, "Hello")
    frames = ["not json", "[1, 2]", json.dumps(event("INSERT", msg))]

    decoded = [e async for e in _frames(FakeSocket(frames))]

    assert decoded == [event("INSERT", msg)]


async def test_garbage_frame_does_not_stop_the_feed():
    msg = record("m1", BOB, ALICE, "Hello")
    state = MessageState()
    connector = SocketConnector(["not json", json.dumps(event("INSERT", msg))])

    feed = LiveFeed(connector, state, Reconcile(), retry_delay=0)
    task = feed.start()
    await asyncio.wait_for(connector.exhausted.wait(), timeout=2)

    assert not task.done()
    assert [m.id for m in state.all()] == ["m1"]
    feed.close()
    await asyncio.gather(task, return_exceptions=True)


class RejectingReconcile(Reconcile):
    def __init__(self, error, *snapshots):
        super().__init__(*snapshots)
        self.error = error

    async def __call__(self):
        if self.error is not None:
            error, self.error = self.error, None
            self.calls += 1
            raise error
        return await super().__call__()


async def test_rejected_reconcile_is_retried():
    msg = record("m1", BOB, ALICE, "missed")
    state = MessageState()
    connector = ScriptedConnector([], [])
    reconcile = RejectingReconcile(AuthError("Session expired"), [msg])

    feed = LiveFeed(connector, state, reconcile, retry_delay=0)
    await run_until_exhausted(feed, connector)

    assert reconcile.calls == 2
    assert [m.id for m in state.all()] == ["m1"]


async def test_unreachable_live_endpoint_is_a_transport_error():
    with pytest.raises(TransportError):
        async with websocket_events("ws://127.0.0.1:9/api/v1/messages/ws", "token"):
            pass
