"""Starlette app — advertising/show/music HTTP routes + WebSocket event stream."""
import asyncio
import contextlib
import json
import logging
import uuid
from typing import Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from .. import acestep, speech
from ..config import ACESTEP_HOST, APP_VERSION, DATA_DIR, MUSIC_BACKEND, SPEECH_HOST
from ..errors import NotFound, ValidationError
from ..models import AudioContent, ScriptContent
from ..prompts import show_music_config
from ..station import Station

logger = logging.getLogger(__name__)

REQUIRED_AD_FIELDS = ("companyName", "selectedShow", "adType", "amount", "duration", "brandCategory")
REQUIRED_REQUEST_FIELDS = ("type", "userName", "message", "showName")

# Editable booking fields: wire name → record field
_AD_UPDATABLE = {
    "companyName": "company_name",
    "selectedShow": "selected_show",
    "brandCategory": "brand_category",
    "amount": "amount",
}


def _station(request) -> Station:
    return request.app.state.station


async def _json_body(request: Request) -> Optional[dict]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# ── Health ───────────────────────────────────────────────────────────────────

async def health(request):
    checks = {}

    if SPEECH_HOST:
        checks["speech"] = {"ok": await speech.check_server(SPEECH_HOST)}
    else:
        checks["speech"] = {"ok": True, "mode": "console"}

    if MUSIC_BACKEND == "acestep":
        checks["acestep"] = {"ok": await acestep.check_server(ACESTEP_HOST)}
    else:
        checks["acestep"] = {"ok": True, "mode": MUSIC_BACKEND}

    checks["data_dir"] = {"ok": DATA_DIR.exists(), "path": str(DATA_DIR)}

    all_ok = all(c["ok"] for c in checks.values())
    return JSONResponse({
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "checks": checks,
    })


# ── Advertising ──────────────────────────────────────────────────────────────

async def advertising(request):
    if request.method == "POST":
        return await _book_advertisement(request)

    station = _station(request)
    show = request.query_params.get("show")
    if show:
        ads = station.advertisements_for_show(show)
        return JSONResponse({"advertisements": [a.to_dict() for a in ads]})

    ads = station.store.all_advertisements()
    return JSONResponse({
        "advertisements": [a.to_dict() for a in ads],
        "stats": station.store.advertising_stats(),
    })


async def _book_advertisement(request):
    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)
    if any(not body.get(k) for k in REQUIRED_AD_FIELDS):
        return _error("Missing required parameters", 400)

    try:
        ad = _station(request).book_advertisement(
            company_name=body["companyName"],
            selected_show=body["selectedShow"],
            ad_type=body["adType"],
            duration=body["duration"],
            amount=body["amount"],
            brand_category=body["brandCategory"],
            package_type=body.get("packageType") or "standard",
            ad_script=body.get("adScript") or None,
            audio_url=body.get("audioUrl") or None,
        )
    except ValidationError as e:
        return _error(str(e), 400)
    except Exception:
        logger.exception("Error in advertising API")
        return _error("Failed to process advertisement", 500)

    return JSONResponse({"success": True, "advertisement": ad.to_dict()})


async def advertisement_detail(request):
    station = _station(request)
    ad_id = request.path_params["ad_id"]

    if request.method == "DELETE":
        if not station.delete_advertisement(ad_id):
            return _error("Advertisement not found", 404)
        return JSONResponse({"success": True})

    ad = station.store.get_advertisement(ad_id)
    if ad is None:
        return _error("Advertisement not found", 404)

    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)

    changes = {field: body[key] for key, field in _AD_UPDATABLE.items() if key in body}
    if "adScript" in body:
        if not isinstance(ad.content, ScriptContent):
            return _error("Audio ads have no script", 400)
        changes["content"] = ScriptContent(body["adScript"])
    if "audioUrl" in body:
        if not isinstance(ad.content, AudioContent):
            return _error("Script ads have no audio URL", 400)
        changes["content"] = AudioContent(body["audioUrl"])
    if not changes:
        return _error("Nothing to update", 400)

    try:
        updated = station.store.update_advertisement(ad_id, **changes)
    except NotFound:
        return _error("Advertisement not found", 404)
    except ValidationError as e:
        return _error(str(e), 400)
    return JSONResponse({"success": True, "advertisement": updated.to_dict()})


async def pricing(request):
    return JSONResponse({"pricing": Station.pricing()})


def _duration_param(request, default: Optional[float] = None) -> Optional[float]:
    raw = request.query_params.get("duration")
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


async def available_slots(request):
    show = request.query_params.get("show")
    duration = _duration_param(request)
    if not show or duration is None:
        return _error("show and a non-negative duration are required", 400)
    slots = _station(request).available_slots(show, duration)
    return JSONResponse({"show": show, "slots": [s.to_dict() for s in slots]})


async def schedule(request):
    duration = _duration_param(request, default=60)
    if duration is None:
        return _error("duration must be a non-negative number", 400)
    return JSONResponse(Station.schedule(duration))


# ── Live show ────────────────────────────────────────────────────────────────

async def live_show(request):
    station = _station(request)

    if request.method == "POST":
        body = await _json_body(request)
        if body is None or not body.get("showName"):
            return _error("showName is required", 400)
        try:
            duration = float(body.get("showDuration", 60))
        except (TypeError, ValueError):
            return _error("showDuration must be a number", 400)
        if duration < 0:
            return _error("showDuration must be a number", 400)
        await station.go_live(body["showName"], duration)

    elif request.method == "DELETE":
        await station.end_show()

    return JSONResponse(station.timer.snapshot())


# ── Music requests ───────────────────────────────────────────────────────────

async def music_requests(request):
    station = _station(request)

    if request.method == "POST":
        body = await _json_body(request)
        if body is None:
            return _error("Invalid JSON body", 400)
        if any(not body.get(k) for k in REQUIRED_REQUEST_FIELDS):
            return _error("Missing required parameters", 400)
        try:
            req = await station.add_music_request(
                kind=body["type"],
                user_name=body["userName"],
                message=body["message"],
                show_name=body["showName"],
                dedicated_to=body.get("dedicatedTo") or None,
            )
        except ValidationError as e:
            return _error(str(e), 400)
        return JSONResponse({"success": True, "request": req.to_dict()})

    show = request.query_params.get("show")
    if show:
        requests = station.store.pending_requests(show)
    else:
        requests = station.store.all_requests()
    return JSONResponse({"requests": [r.to_dict() for r in requests]})


async def music_config(request):
    show = request.query_params.get("show", "")
    return JSONResponse({"show": show, "config": show_music_config(show)})


# ── WebSocket ────────────────────────────────────────────────────────────────

async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    station: Station = websocket.app.state.station
    client_id = str(uuid.uuid4())
    since = websocket.query_params.get("since")
    queue = station.state.subscribe(client_id, int(since) if since and since.isdigit() else None)
    logger.info("WS connected: %s", client_id)

    await websocket.send_json({
        "seq": station.state.last_seq,
        "type": "sync",
        "data": station.get_snapshot(),
    })

    async def _reader():
        # Clients only listen; drain until they go away
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.error("WS reader error: %s", e)

    async def _writer():
        try:
            while True:
                await websocket.send_json(await queue.get())
        except Exception as e:
            logger.debug("WS writer stopped: %s", e)

    reader_task = asyncio.create_task(_reader())
    writer_task = asyncio.create_task(_writer())

    try:
        done, pending = await asyncio.wait(
            [reader_task, writer_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        station.state.unsubscribe(client_id)
        logger.info("WS disconnected: %s", client_id)


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(station: Optional[Station] = None) -> Starlette:
    station = station or Station.from_config()

    @contextlib.asynccontextmanager
    async def lifespan(app):
        await station.start()
        try:
            yield
        finally:
            await station.stop()

    routes = [
        Route("/api/health", health),
        Route("/api/advertising", advertising, methods=["GET", "POST"]),
        Route("/api/advertising/pricing", pricing),
        Route("/api/advertising/slots", available_slots),
        Route("/api/advertising/{ad_id}", advertisement_detail, methods=["PATCH", "DELETE"]),
        Route("/api/schedule", schedule),
        Route("/api/shows/live", live_show, methods=["GET", "POST", "DELETE"]),
        Route("/api/music/requests", music_requests, methods=["GET", "POST"]),
        Route("/api/music/config", music_config),
        WebSocketRoute("/ws", websocket_endpoint),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.station = station
    return app
