import pytest

from busk.web.state import StationState


@pytest.mark.asyncio
async def test_broadcast_numbers_envelopes_and_records_history():
    state = StationState()
    first = await state.broadcast("show_started", {"show": "X"})
    second = await state.broadcast("show_stopped", {})

    assert (first["seq"], second["seq"]) == (1, 2)
    assert state.last_seq == 2
    assert state.events("show_started") == [{"show": "X"}]


@pytest.mark.asyncio
async def test_subscribers_receive_envelopes():
    state = StationState()
    q = state.subscribe("a")
    await state.broadcast("ad_playing", {"id": "ad_1"})

    envelope = q.get_nowait()
    assert envelope["type"] == "ad_playing"
    assert envelope["data"] == {"id": "ad_1"}

    state.unsubscribe("a")
    await state.broadcast("ad_completed", {"id": "ad_1"})
    assert q.empty()
    assert state.client_count == 0


@pytest.mark.asyncio
async def test_reconnecting_client_gets_what_it_missed():
    state = StationState()
    for i in range(4):
        await state.broadcast("slot_triggered", {"n": i})

    q = state.subscribe("late", since=2)
    assert [q.get_nowait()["seq"] for _ in range(q.qsize())] == [3, 4]


@pytest.mark.asyncio
async def test_lagging_client_is_told_to_resync():
    state = StationState(backlog=2)
    q = state.subscribe("slow")
    for i in range(3):
        await state.broadcast("request_status", {"n": i})

    assert q.qsize() == 1
    marker = q.get_nowait()
    assert marker["type"] == "resync"
    assert marker["data"] == {"since": 2}
    assert state.replay(marker["data"]["since"])[0]["data"] == {"n": 2}
