"""
Comment board routes for the GinkoHub Tools API
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from starlette.concurrency import run_in_threadpool

from ginkohub import comments
from ginkohub.comments import CommentRejected
from ginkohub.config import get_store
from ginkohub.logger import get_logger
from ginkohub.models import CommentCreate, CommentModel, CommentPostResponse, VoteRequest, VoteResponse
from ginkohub.store import KeyValueStore
from ginkohub.utils import client_ip

router = APIRouter()
logger = get_logger("routes.comments")


@router.get("/comments/{page_id}", response_model=List[CommentModel], tags=["Comments"])
async def get_comments(
    page_id: str = Path(..., description="Page identifier"),
    store: KeyValueStore = Depends(get_store),
):
    """Fetch comments for a page, newest first"""
    try:
        return await run_in_threadpool(comments.list_comments, store, page_id)
    except Exception as e:
        logger.error(f"Reading comments for {page_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch comments")


@router.post("/comments/{page_id}", response_model=CommentPostResponse, tags=["Comments"])
async def post_comment(
    payload: CommentCreate,
    request: Request,
    page_id: str = Path(..., description="Page identifier"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Submit a new Markdown comment

    - **author**: Display name, markup is stripped
    - **content**: Markdown text, 2 to 500 characters
    """
    try:
        comment = await run_in_threadpool(
            comments.post_comment,
            store,
            page_id,
            payload.author or "Anonymous",
            payload.content or "",
            client_ip(request),
        )
    except CommentRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Posting comment on {page_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to post comment")

    return {"success": True, "comment": comment}


@router.post("/comments/{page_id}/{comment_id}/vote", response_model=VoteResponse, tags=["Comments"])
async def vote_comment(
    payload: VoteRequest,
    request: Request,
    page_id: str = Path(..., description="Page identifier"),
    comment_id: str = Path(..., description="Comment identifier"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Up- or down-vote a comment, once per address per day

    - **type**: `up` or `down`
    """
    try:
        counts = await run_in_threadpool(
            comments.vote,
            store,
            page_id,
            comment_id,
            payload.type or "",
            client_ip(request),
        )
    except CommentRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Vote on {page_id}/{comment_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to vote")

    return {"success": True, **counts}
