"""
Generic fetch proxy route for the GinkoHub Tools API
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from ginkohub.config import Config, get_store
from ginkohub.errors import InvalidTargetError, UpstreamError
from ginkohub.fetcher import (
    build_outbound_headers,
    extract_metadata,
    fetch_with_retry,
    passthrough_headers,
    validate_target,
)
from ginkohub.logger import get_logger
from ginkohub.models import FetchJsonResponse, FetchStatusModel, PageMetadataModel
from ginkohub.store import KeyValueStore
from ginkohub.utils import track_usage

router = APIRouter()
logger = get_logger("routes.fetch")

FORMATS = ("raw", "json", "meta")


@router.api_route(
    "/fetch",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
    tags=["Fetch"],
)
async def fetch_url(
    request: Request,
    url: Optional[str] = Query(None, description="Absolute http(s) URL to fetch"),
    format: str = Query("raw", description="raw, json or meta"),
    headers: Optional[str] = Query(None, description="JSON object of extra request headers"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Fetch any URL on behalf of the caller

    - **url**: Target URL (http or https)
    - **format**: `raw` passes the upstream response through, `json` wraps
      the body with status details, `meta` returns page metadata
    - **headers**: JSON object of request headers; `x-proxy-header-<name>`
      request headers take precedence over it
    """
    if format not in FORMATS:
        raise HTTPException(status_code=400, detail=f"Invalid format, must be one of {', '.join(FORMATS)}")
    try:
        target = validate_target(url)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=str(e))

    outbound = build_outbound_headers(request.headers, headers)
    body = await request.body()

    started = time.monotonic()
    try:
        upstream = await run_in_threadpool(
            fetch_with_retry, request.method, target.geturl(), outbound, body, Config.FETCH_TIMEOUT
        )
    except UpstreamError as e:
        logger.error(f"Fetch of {url} failed: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch url: {e}")
    elapsed_ms = int((time.monotonic() - started) * 1000)

    await run_in_threadpool(track_usage, store, "fetch")

    if format == "json":
        return FetchJsonResponse(
            contents=upstream.text,
            status=FetchStatusModel(
                url=upstream.url or target.geturl(),
                content_type=upstream.headers.get("content-type"),
                http_code=upstream.status_code,
                response_time=elapsed_ms,
            ),
        )

    if format == "meta":
        try:
            meta = extract_metadata(upstream.text, target.geturl())
        except Exception as e:
            logger.error(f"Metadata extraction for {url} failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to parse page metadata")
        payload = PageMetadataModel(status=upstream.status_code, **meta)
        return JSONResponse(status_code=upstream.status_code, content=payload.model_dump())

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=passthrough_headers(upstream.headers),
    )
