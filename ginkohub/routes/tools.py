"""
Utility tool routes for the GinkoHub Tools API
"""

import base64
import binascii
import io
import json
from typing import Optional

import feedparser
import markdown
import qrcode
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from ginkohub.badge import THEMES, render_counter_svg
from ginkohub.config import Config, get_store
from ginkohub.errors import InvalidTargetError
from ginkohub.fetcher import validate_target
from ginkohub.logger import get_logger
from ginkohub.models import (
    Base64Request,
    FeedModel,
    HitCounterResponse,
    TextRequest,
    TextStatsResponse,
    TextTransformRequest,
    UnitConversionResponse,
)
from ginkohub.store import KeyValueStore
from ginkohub.textutils import convert_unit, generate_password, text_stats, transform_text
from ginkohub.utils import acquire_lock, client_ip, encode_visitor, get_http_session, track_usage

router = APIRouter()
logger = get_logger("routes.tools")


@router.get("/tools/ip", tags=["Tools"])
async def get_ip(request: Request):
    """Get the caller's IP address"""
    return {"ip": client_ip(request)}


def render_qr_png(text: str, box_size: int) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=2,
    )
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@router.get("/tools/qr", tags=["Tools"])
async def generate_qr(
    background_tasks: BackgroundTasks,
    text: str = Query(..., min_length=1, max_length=2000, description="Text to encode"),
    size: int = Query(10, ge=1, le=40, description="Pixels per QR module"),
    format: str = Query("json", pattern="^(json|png)$", description="json (data URL) or png"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Generate a QR code

    - **text**: Content to encode
    - **format**: `json` returns a data URL, `png` returns the image
    """
    try:
        png = await run_in_threadpool(render_qr_png, text, size)
    except Exception as e:
        logger.error(f"QR generation failed: {e}")
        raise HTTPException(status_code=500, detail="QR generation failed")

    background_tasks.add_task(track_usage, store, "qr")
    if format == "png":
        return Response(content=png, media_type="image/png")
    return {"qr_code": "data:image/png;base64," + base64.b64encode(png).decode("ascii")}


def read_feed(url: str, limit: int) -> dict:
    response = get_http_session().get(
        url,
        headers={"User-Agent": Config.DEFAULT_USER_AGENT},
        timeout=Config.SCRAPER_TIMEOUT,
    )
    response.raise_for_status()
    parsed = feedparser.parse(response.content)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"Unparseable feed: {parsed.get('bozo_exception')}")

    feed = parsed.feed
    return {
        "title": feed.get("title"),
        "description": feed.get("subtitle") or feed.get("description"),
        "link": feed.get("link"),
        "items": [
            {
                "title": entry.get("title"),
                "link": entry.get("link"),
                "published": entry.get("published") or entry.get("updated"),
                "summary": entry.get("summary"),
                "author": entry.get("author"),
            }
            for entry in parsed.entries[:limit]
        ],
    }


@router.get("/tools/rss", response_model=FeedModel, tags=["Tools"])
async def parse_rss(
    background_tasks: BackgroundTasks,
    url: Optional[str] = Query(None, description="Feed URL"),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of items"),
    store: KeyValueStore = Depends(get_store),
):
    """Parse an RSS or Atom feed"""
    try:
        target = validate_target(url)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        feed = await run_in_threadpool(read_feed, target.geturl(), limit)
    except Exception as e:
        logger.error(f"RSS parsing for {url} failed: {e}")
        raise HTTPException(status_code=500, detail="RSS parsing failed")

    background_tasks.add_task(track_usage, store, "rss")
    return feed


@router.post("/tools/base64", tags=["Tools"])
async def convert_base64(
    payload: Base64Request,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(get_store),
):
    """
    Base64 encode or decode

    - **action**: `encode` or `decode`
    - **text**: Input text
    """
    if not payload.text or not payload.action:
        raise HTTPException(status_code=400, detail="Missing text or action")

    if payload.action == "encode":
        result = base64.b64encode(payload.text.encode("utf-8")).decode("ascii")
    elif payload.action == "decode":
        try:
            result = base64.b64decode(payload.text, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise HTTPException(status_code=400, detail="Conversion failed")
    else:
        raise HTTPException(status_code=400, detail="Invalid action, must be 'encode' or 'decode'")

    background_tasks.add_task(track_usage, store, "base64")
    return {"result": result}


@router.post("/tools/markdown", tags=["Tools"])
async def render_markdown(
    payload: TextRequest,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(get_store),
):
    """Render Markdown to HTML"""
    try:
        html = markdown.markdown(payload.text, extensions=["fenced_code", "tables"])
    except Exception as e:
        logger.error(f"Markdown rendering failed: {e}")
        raise HTTPException(status_code=500, detail="Markdown rendering failed")

    background_tasks.add_task(track_usage, store, "markdown")
    return {"html": html}


@router.get("/tools/password", tags=["Tools"])
async def get_password(
    background_tasks: BackgroundTasks,
    length: int = Query(16, ge=4, le=128, description="Password length"),
    uppercase: bool = Query(True),
    lowercase: bool = Query(True),
    numbers: bool = Query(True),
    symbols: bool = Query(True),
    store: KeyValueStore = Depends(get_store),
):
    """Generate a random password"""
    try:
        password = generate_password(length, uppercase, lowercase, numbers, symbols)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(track_usage, store, "password")
    return {"password": password, "length": len(password)}


@router.post("/tools/json-validate", tags=["Tools"])
async def validate_json(
    payload: TextRequest,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(get_store),
):
    """Validate a JSON document and pretty-print it"""
    background_tasks.add_task(track_usage, store, "json_validate")
    try:
        parsed = json.loads(payload.text)
    except ValueError as e:
        return {"valid": False, "error": str(e)}
    return {"valid": True, "formatted": json.dumps(parsed, indent=2, ensure_ascii=False)}


@router.get("/tools/convert-unit", response_model=UnitConversionResponse, tags=["Tools"])
async def get_unit_conversion(
    background_tasks: BackgroundTasks,
    value: float = Query(..., description="Value to convert"),
    from_unit: str = Query(..., alias="from", description="Source unit, e.g. C, km, lb"),
    to_unit: str = Query(..., alias="to", description="Target unit"),
    type: str = Query(..., description="temp, length or weight"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Convert temperature, length or weight units

    - **temp**: C, F, K
    - **length**: mm, cm, m, km, in, ft, yd, mi
    - **weight**: mg, g, kg, t, oz, lb
    """
    try:
        result = convert_unit(value, from_unit, to_unit, type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(track_usage, store, "convert_unit")
    return UnitConversionResponse(value=value, from_unit=from_unit, to_unit=to_unit, type=type, result=result)


@router.post("/tools/text-stats", response_model=TextStatsResponse, tags=["Tools"])
async def get_text_stats(
    payload: TextRequest,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(get_store),
):
    """Character, word and line counts plus reading time"""
    background_tasks.add_task(track_usage, store, "text_stats")
    return text_stats(payload.text)


@router.post("/tools/text-transform", tags=["Tools"])
async def get_text_transform(
    payload: TextTransformRequest,
    background_tasks: BackgroundTasks,
    store: KeyValueStore = Depends(get_store),
):
    """
    Transform text

    - **action**: upper, lower, title, sentence, camel, snake, kebab, slug or reverse
    """
    try:
        result = transform_text(payload.text, payload.action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(track_usage, store, "text_transform")
    return {"result": result}


def count_hit(store: KeyValueStore, counter_id: str, visitor_id: Optional[str]) -> int:
    """Increment the counter, at most once per visitor per lock window."""
    key = f"counter:{counter_id}"
    if visitor_id is None:
        return store.incr(key)
    if acquire_lock(store, f"lock:{counter_id}:{visitor_id}", Config.HIT_LOCK_TTL):
        return store.incr(key)
    return int(store.get(key) or 0)


@router.get("/tools/hit-counter/{counter_id}", tags=["Tools"])
async def hit_counter(
    request: Request,
    background_tasks: BackgroundTasks,
    counter_id: str = Path(..., description="Counter identifier"),
    format: str = Query("svg", pattern="^(svg|json)$", description="svg or json"),
    label: str = Query("Visits", max_length=50, description="Badge label"),
    theme: str = Query("default", description=f"One of {', '.join(THEMES)}"),
    uid: Optional[str] = Query(None, description="Visitor id; repeat visits are not counted"),
    mode: Optional[str] = Query(None, description="'unique' derives the visitor id from the IP"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Count a page view and render it

    - **format**: `svg` badge or `json`
    - **uid** / **mode=unique**: count each visitor once per day
    """
    visitor_id = uid
    if mode == "unique" and not visitor_id:
        visitor_id = encode_visitor(client_ip(request))

    try:
        count = await run_in_threadpool(count_hit, store, counter_id, visitor_id)
    except Exception as e:
        logger.error(f"Hit counter {counter_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to update counter")

    background_tasks.add_task(track_usage, store, "hit_counter")
    if format == "json":
        return HitCounterResponse(id=counter_id, label=label, count=count)

    return Response(
        content=render_counter_svg(label, count, theme),
        media_type="image/svg+xml",
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
