"""
GitHub routes for the GinkoHub Tools API
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from ginkohub import scraper
from ginkohub.config import Config, get_store
from ginkohub.errors import InvalidTargetError, UpstreamError
from ginkohub.fetcher import build_outbound_headers, fetch_once, passthrough_headers, validate_target
from ginkohub.logger import get_logger
from ginkohub.models import RepoInfoModel, TrendingDeveloperModel, TrendingRepoModel, UserProfileModel
from ginkohub.store import KeyValueStore
from ginkohub.utils import read_usage

router = APIRouter()
logger = get_logger("routes.github")

SINCE_PATTERN = "^(daily|weekly|monthly)$"


@router.get("/github/repo/{owner}/{repo}", response_model=RepoInfoModel, tags=["GitHub"])
async def get_repo_info(
    owner: str = Path(..., description="Repository owner"),
    repo: str = Path(..., description="Repository name"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Get GitHub repository statistics

    - **owner**: The user or organisation owning the repository
    - **repo**: The repository name
    """
    try:
        return await run_in_threadpool(scraper.get_repo, store, owner, repo)
    except Exception as e:
        logger.error(f"Repo scrape for {owner}/{repo} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch repo stats")


@router.get("/github/trending", response_model=List[TrendingRepoModel], tags=["GitHub"])
async def get_trending_repos(
    language: Optional[str] = Query(None, description="Programming language filter"),
    since: str = Query("daily", pattern=SINCE_PATTERN, description="daily, weekly or monthly"),
    store: KeyValueStore = Depends(get_store),
):
    """
    Get trending repositories

    - **language**: Optional language, e.g. `python`
    - **since**: Trending window
    """
    try:
        return await run_in_threadpool(scraper.get_trending_repos, store, language, since)
    except Exception as e:
        logger.error(f"Trending scrape failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch trending repositories")


@router.get("/github/trending/developers", response_model=List[TrendingDeveloperModel], tags=["GitHub"])
async def get_trending_developers(
    language: Optional[str] = Query(None, description="Programming language filter"),
    since: str = Query("daily", pattern=SINCE_PATTERN, description="daily, weekly or monthly"),
    store: KeyValueStore = Depends(get_store),
):
    """Get trending developers"""
    try:
        return await run_in_threadpool(scraper.get_trending_developers, store, language, since)
    except Exception as e:
        logger.error(f"Trending developers scrape failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch trending developers")


@router.get("/github/user/{username}", response_model=UserProfileModel, tags=["GitHub"])
async def get_user_profile(
    username: str = Path(..., description="GitHub username"),
    store: KeyValueStore = Depends(get_store),
):
    """Get a public GitHub user profile"""
    try:
        return await run_in_threadpool(scraper.get_user, store, username)
    except Exception as e:
        logger.error(f"User scrape for {username} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch user profile")


@router.get("/github/stats", tags=["GitHub"])
async def get_github_stats(store: KeyValueStore = Depends(get_store)):
    """Usage counters of the GitHub endpoints"""
    try:
        usage = await run_in_threadpool(read_usage, store)
    except Exception as e:
        logger.error(f"Reading usage counters failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to read stats")

    features = {name: count for name, count in usage.items() if name.startswith("github_")}
    return {
        "total": sum(features.values()),
        "features": features,
    }


@router.get("/github/proxy", tags=["GitHub"])
async def proxy_github_page(
    request: Request,
    url: Optional[str] = Query(None, description="GitHub URL to fetch"),
):
    """
    Proxy a GitHub page and return the raw response

    - **url**: Absolute URL on github.com or one of its subdomains
    """
    try:
        target = validate_target(url, github_only=True)
    except InvalidTargetError as e:
        raise HTTPException(status_code=400, detail=str(e))

    headers = build_outbound_headers(request.headers, user_agent=Config.SCRAPER_USER_AGENT)
    try:
        upstream = await run_in_threadpool(
            fetch_once, "GET", target.geturl(), headers, None, Config.GITHUB_PROXY_TIMEOUT
        )
    except UpstreamError as e:
        logger.error(f"GitHub proxy fetch of {url} failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch url")

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=passthrough_headers(upstream.headers),
    )
