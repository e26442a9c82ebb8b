from campus_messaging.services.read_state import ReadStateController, unread_ids_for_viewer

from conftest import ALICE, BOB, CAROL, record


def thread():
    return [
        record("m1", BOB, ALICE, at=1),
        record("m2", ALICE, BOB, at=2),
        record("m3", BOB, ALICE, at=3, read=True),
        record("m4", BOB, ALICE, at=4),
        record("m5", CAROL, ALICE, at=5),
    ]


def test_unread_ids_only_for_viewer_in_that_thread():
    assert unread_ids_for_viewer(thread(), ALICE, BOB) == {"m1", "m4"}
    assert unread_ids_for_viewer(thread(), ALICE, CAROL) == {"m5"}


def test_senders_own_messages_are_never_unread():
    assert unread_ids_for_viewer(thread(), BOB, ALICE) == {"m2"}


class RecordingMarkRead:
    def __init__(self):
        self.calls = []

    async def __call__(self, ids):
        self.calls.append(set(ids))


async def test_opening_thread_submits_one_batch():
    mark_read = RecordingMarkRead()

    ids = await ReadStateController(mark_read).thread_opened(ALICE, BOB, thread())

    assert ids == {"m1", "m4"}
    assert mark_read.calls == [{"m1", "m4"}]


async def test_nothing_to_mark_skips_the_call():
    mark_read = RecordingMarkRead()
    read_thread = [record("m1", BOB, ALICE, read=True), record("m2", ALICE, BOB)]

    ids = await ReadStateController(mark_read).thread_opened(ALICE, BOB, read_thread)

    assert ids == set()
    assert mark_read.calls == []
