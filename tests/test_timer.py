import asyncio

import pytest

from busk.errors import SpeechError
from busk.playback import PlaybackController
from busk.timer import ShowTimer

from conftest import SHOW, book, instant_sleep


@pytest.fixture
def timer(store, speaker, state, clock):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    # Long interval: tests drive ticks by hand
    return ShowTimer(store, playback, state, clock=clock, tick_interval=3600)


@pytest.mark.asyncio
async def test_start_resolves_schedule_and_runs(timer):
    await timer.start(SHOW, 90)
    try:
        assert timer.is_running
        assert timer.schedule.key == "60min"
        assert timer.state.on_air == SHOW
    finally:
        await timer.stop()


@pytest.mark.asyncio
async def test_tick_inside_window_plays_ad(timer, store, clock, speaker):
    ad = book(store, duration=10)
    await timer.start(SHOW, 60)

    clock.at_minute(5.1)   # 6 seconds past the 5-minute slot
    played = await timer.tick()

    assert played.id == ad.id
    assert len(speaker.spoken) == 1
    assert timer.last_played_at == clock.now
    assert timer.rotation.index == 1
    await timer.stop()


@pytest.mark.asyncio
async def test_tick_outside_window_does_nothing(timer, store, clock):
    book(store, duration=10)
    await timer.start(SHOW, 60)

    clock.at_minute(5.25)  # 15 seconds late, outside the 12s window
    assert await timer.tick() is None
    clock.at_minute(4.75)
    assert await timer.tick() is None
    assert timer.rotation.index == 0
    await timer.stop()


@pytest.mark.asyncio
async def test_no_retrigger_within_thirty_seconds(timer, store, clock):
    book(store, duration=10, company="A")
    book(store, duration=10, company="B")
    await timer.start(SHOW, 60)

    clock.at_minute(4.85)
    assert (await timer.tick()).company_name == "A"
    clock.advance(10)      # still inside the window, but too soon
    assert await timer.tick() is None
    assert timer.rotation.index == 1
    await timer.stop()


@pytest.mark.asyncio
async def test_rotation_across_slots(timer, store, clock, state):
    for name in "ABC":
        book(store, duration=10, company=name)
    await timer.start(SHOW, 120)

    picked = []
    # 10-second slots of the 120-minute schedule sit at minutes 5 and 115
    for minute in (5, 115):
        clock.at_minute(minute)
        picked.append((await timer.tick()).company_name)

    assert picked == ["A", "C"]
    # A is off the scheduled list by the second slot; the shared index lands on C
    await asyncio.sleep(0)
    assert [a.company_name for a in store.advertisements_for_show(SHOW)] == ["B"]
    assert len(state.events("slot_triggered")) == 2
    await timer.stop()


@pytest.mark.asyncio
async def test_slot_without_eligible_ads_changes_nothing(timer, store, clock):
    book(store, duration=30)           # wrong length for the 5-minute slot
    await timer.start(SHOW, 60)
    timer.rotation.index = 7

    clock.at_minute(5)
    assert await timer.tick() is None
    assert timer.rotation.index == 7
    assert timer.last_played_at == 0.0
    await timer.stop()


@pytest.mark.asyncio
async def test_only_one_slot_per_tick(store, speaker, state, clock):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    # A window wide enough to cover two slots: first in catalog order wins
    timer = ShowTimer(store, playback, state, clock=clock, tick_interval=3600, trigger_window=11)
    book(store, duration=10, company="Ten")
    book(store, duration=20, company="Twenty")
    await timer.start(SHOW, 30)

    clock.at_minute(10)
    played = await timer.tick()
    assert played.company_name == "Ten"
    assert len(speaker.spoken) == 1
    await timer.stop()


@pytest.mark.asyncio
async def test_playback_failure_keeps_timer_alive(timer, store, clock, speaker):
    ad = book(store, duration=10)
    speaker.fail_with = SpeechError("tts offline")
    await timer.start(SHOW, 60)

    clock.at_minute(5)
    assert (await timer.tick()).id == ad.id
    assert store.get_advertisement(ad.id).status == "scheduled"
    assert timer.is_running
    await timer.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_resets_cursors(timer, store, clock):
    book(store, duration=10)
    await timer.start(SHOW, 60)
    clock.at_minute(5)
    await timer.tick()

    await timer.stop()
    first = timer.snapshot()
    await timer.stop()

    assert timer.snapshot() == first
    assert first["status"] == "idle"
    assert first["elapsedMinutes"] == 0
    assert first["rotationIndex"] == 0
    assert first["lastPlayedAt"] is None
    assert timer._task is None


@pytest.mark.asyncio
async def test_idle_timer_does_no_work(timer, store, clock):
    book(store, duration=10)
    clock.at_minute(5)
    assert await timer.tick() is None
    assert timer.rotation.index == 0


@pytest.mark.asyncio
async def test_loop_ticks_until_stopped(store, speaker, state, clock):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    timer = ShowTimer(store, playback, state, clock=clock, tick_interval=0.001)
    ticks = []

    async def counting_tick():
        ticks.append(clock.now)

    timer.tick = counting_tick
    await timer.start(SHOW, 60)
    await asyncio.sleep(0.05)
    await timer.stop()
    seen = len(ticks)
    await asyncio.sleep(0.02)

    assert seen > 0
    assert len(ticks) == seen


@pytest.mark.asyncio
async def test_tick_errors_do_not_kill_the_loop(store, speaker, state, clock):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    timer = ShowTimer(store, playback, state, clock=clock, tick_interval=0.001)
    calls = []

    async def broken_tick():
        calls.append(1)
        raise RuntimeError("boom")

    timer.tick = broken_tick
    await timer.start(SHOW, 60)
    await asyncio.sleep(0.05)
    assert len(calls) > 1
    assert timer.is_running
    await timer.stop()


@pytest.mark.asyncio
async def test_restart_replaces_previous_loop(timer):
    await timer.start(SHOW, 60)
    first = timer._task
    await timer.start("Morning Vibes with AI Alex", 30)

    assert first.cancelled()
    assert timer.show_name == "Morning Vibes with AI Alex"
    assert timer.schedule.key == "30min"
    await timer.stop()
