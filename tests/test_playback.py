import asyncio
import json

import pytest

from busk import config
from busk.errors import SpeechError
from busk.playback import PlaybackController, build_ad_announcement

from conftest import SHOW, book, instant_sleep


def test_standard_announcement(store):
    ad = book(store, company="Acme", ad_script="Buy widgets.")
    assert build_ad_announcement(ad) == "A message from our sponsor, Acme: Buy widgets."


def test_branded_announcement(store):
    ad = book(store, company="Acme", ad_script="Buy widgets.", package_type="branded")
    assert build_ad_announcement(ad) == "This hour is brought to you by Acme. Buy widgets."


@pytest.mark.asyncio
async def test_script_ad_is_spoken_then_completed_after_duration(store, speaker, state):
    sleeps = []

    async def record_sleep(seconds):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    playback = PlaybackController(store, speaker, state, sleep=record_sleep)
    ad = book(store, duration=20, ad_script="Buy widgets.")

    assert await playback.play(ad) is True
    assert speaker.spoken == [
        ("A message from our sponsor, Acme: Buy widgets.", True, False, "Advertisement")
    ]
    assert store.get_advertisement(ad.id).status == "playing"

    for _ in range(5):
        await asyncio.sleep(0)

    assert sleeps == [20]
    assert store.get_advertisement(ad.id).status == "completed"
    assert playback.pending_completions == 0
    assert [e["id"] for e in state.events("ad_completed")] == [ad.id]
    metrics = [json.loads(l) for l in config.METRICS_LOG.read_text().splitlines()]
    assert metrics[0]["event"] == "ad_aired"


@pytest.mark.asyncio
async def test_ad_stays_playing_for_booked_duration(store, speaker, state):
    gate = asyncio.Event()

    async def held_sleep(_seconds):
        await gate.wait()

    playback = PlaybackController(store, speaker, state, sleep=held_sleep)
    ad = book(store)
    await playback.play(ad)
    await asyncio.sleep(0)
    assert store.get_advertisement(ad.id).status == "playing"

    gate.set()
    for _ in range(5):
        await asyncio.sleep(0)
    assert store.get_advertisement(ad.id).status == "completed"


@pytest.mark.asyncio
async def test_audio_ad_goes_to_audio_player(store, speaker, state):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    ad = store.add_advertisement(
        company_name="Beep Co", selected_show=SHOW, ad_type="audio",
        duration=30, amount=100, audio_url="https://cdn.example/beep.mp3",
    )

    assert await playback.play(ad) is True
    assert speaker.played == ["https://cdn.example/beep.mp3"]
    assert speaker.spoken == []


@pytest.mark.asyncio
async def test_speech_failure_reverts_to_scheduled(store, speaker, state):
    speaker.fail_with = SpeechError("tts offline")
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    ad = book(store)

    assert await playback.play(ad) is False
    assert store.get_advertisement(ad.id).status == "scheduled"
    assert playback.pending_completions == 0
    assert state.events("ad_reverted")[0]["id"] == ad.id
    assert state.events("error")[0]["ad"] == ad.id
    logged = json.loads(config.ERRORS_LOG.read_text().splitlines()[0])
    assert logged["stage"] == "ad_playback"
    assert "tts offline" in logged["error"]


@pytest.mark.asyncio
async def test_failed_save_is_treated_as_playback_failure(store, speaker, state, persistence):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    ad = book(store)
    persistence.broken = True

    assert await playback.play(ad) is False
    assert speaker.spoken == []
    assert store.get_advertisement(ad.id).status == "scheduled"
    assert state.events("error")


@pytest.mark.asyncio
async def test_cancelled_playback_reverts(store, speaker, state):
    speaker.gate = asyncio.Event()
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    ad = book(store)

    task = asyncio.create_task(playback.play(ad))
    await asyncio.sleep(0)
    assert store.get_advertisement(ad.id).status == "playing"

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert store.get_advertisement(ad.id).status == "scheduled"


@pytest.mark.asyncio
async def test_flush_completes_ads_still_on_air(store, speaker, state):
    async def forever(_seconds):
        await asyncio.Event().wait()

    playback = PlaybackController(store, speaker, state, sleep=forever)
    ad = book(store)
    await playback.play(ad)
    assert playback.pending_completions == 1

    await playback.flush()
    assert store.get_advertisement(ad.id).status == "completed"
    assert playback.pending_completions == 0


@pytest.mark.asyncio
async def test_failed_completion_save_is_retried(store, speaker, state, persistence):
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)
        await asyncio.sleep(0)

    playback = PlaybackController(store, speaker, state, sleep=record_sleep, retry_delay=7)
    ad = book(store, duration=10)
    await playback.play(ad)
    persistence.broken = True

    for _ in range(5):
        await asyncio.sleep(0)
    assert store.get_advertisement(ad.id).status == "playing"
    assert playback.pending_completions == 1
    assert delays[0] == 10
    assert 7 in delays
    logged = [json.loads(l) for l in config.ERRORS_LOG.read_text().splitlines()]
    assert logged[0]["stage"] == "ad_completion"

    persistence.broken = False
    for _ in range(5):
        await asyncio.sleep(0)
    assert store.get_advertisement(ad.id).status == "completed"
    assert playback.pending_completions == 0
    assert [e["id"] for e in state.events("ad_completed")] == [ad.id]


@pytest.mark.asyncio
async def test_completion_of_deleted_ad_is_dropped(store, speaker, state):
    playback = PlaybackController(store, speaker, state, sleep=instant_sleep)
    ad = book(store)
    await playback.play(ad)
    store.delete_advertisement(ad.id)

    for _ in range(5):
        await asyncio.sleep(0)
    assert playback.pending_completions == 0
    assert state.events("ad_completed") == []
