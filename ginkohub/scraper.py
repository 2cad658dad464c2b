"""GitHub page scraping.

Parsers are pure functions over page HTML. The ``get_*`` helpers add the
outbound request and a read-through cache in the key-value store; a failing
store never stops a scrape.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional

from bs4 import BeautifulSoup, Tag

from ginkohub.config import Config
from ginkohub.logger import get_logger
from ginkohub.store import KeyValueStore
from ginkohub.utils import cache_get, cache_set, get_http_session, track_usage

logger = get_logger("scraper")

GITHUB = "https://github.com"
TRENDING_PERIODS = ("daily", "weekly", "monthly")

_COUNT_RE = re.compile(r"(\d[\d.,]*)\s*([kKmM]\b)?")


def parse_count(text: Optional[str]) -> int:
    """Turn ``"1,234"``, ``"1.2k"`` or ``"3m"`` into an integer; junk is 0."""
    if not text:
        return 0
    match = _COUNT_RE.search(text)
    if not match:
        return 0
    number, suffix = match.groups()
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return 0
    multiplier = {"k": 1_000, "m": 1_000_000}.get((suffix or "").lower(), 1)
    return int(round(value * multiplier))


def _text(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    value = " ".join(node.get_text(" ", strip=True).split())
    return value or None


def _counter(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    return node.get("title") or node.get_text(strip=True)


def parse_repo_page(html: str, owner: str, repo: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")

    stars = soup.select_one("#repo-stars-counter-star")
    forks = soup.select_one("#repo-network-counter")
    watchers = soup.select_one('a[href$="/watchers"] strong')
    language = soup.select_one('[itemprop="programmingLanguage"]') or soup.select_one(
        "span.color-fg-default.text-bold.mr-1"
    )

    return {
        "owner": owner,
        "repo": repo,
        "description": _text(soup.select_one("p.f4.my-3")) or "",
        "stars": parse_count(_counter(stars)),
        "forks": parse_count(_counter(forks)),
        "watchers": parse_count(_text(watchers)),
        "language": _text(language),
        "topics": [_text(a) for a in soup.select("a.topic-tag") if _text(a)],
        "url": f"{GITHUB}/{owner}/{repo}",
    }


def parse_trending_repos(html: str) -> List[dict]:
    soup = BeautifulSoup(html, "html.parser")
    repos = []
    for row in soup.select("article.Box-row"):
        link = row.select_one("h2 a")
        if link is None or not link.get("href"):
            continue
        path = link["href"].strip("/")
        owner, _, name = path.partition("/")
        stars_today = row.select_one("span.d-inline-block.float-sm-right")
        repos.append({
            "owner": owner,
            "name": name,
            "url": f"{GITHUB}/{path}",
            "description": _text(row.select_one("p")) or "",
            "language": _text(row.select_one('[itemprop="programmingLanguage"]')),
            "stars": parse_count(_text(row.select_one('a[href$="/stargazers"]'))),
            "forks": parse_count(_text(row.select_one('a[href$="/forks"]'))),
            "stars_today": parse_count(_text(stars_today)),
        })
    return repos


def parse_trending_developers(html: str) -> List[dict]:
    soup = BeautifulSoup(html, "html.parser")
    developers = []
    for row in soup.select("article.Box-row"):
        name_link = row.select_one("h1.h3 a")
        if name_link is None:
            continue
        login_link = row.select_one("p.f4 a")
        username = _text(login_link) or name_link.get("href", "").strip("/")
        avatar = row.select_one("img.avatar-user") or row.select_one("img.avatar")
        popular = row.select_one("h1.h4 a")
        developers.append({
            "name": _text(name_link),
            "username": username,
            "url": f"{GITHUB}/{username}",
            "avatar": avatar.get("src") if avatar is not None else None,
            "popular_repo": _text(popular),
        })
    return developers


def parse_user_page(html: str, username: str) -> dict:
    soup = BeautifulSoup(html, "html.parser")
    avatar = soup.select_one("img.avatar-user") or soup.select_one("img.avatar")
    return {
        "name": _text(soup.select_one("span.p-name")),
        "login": _text(soup.select_one("span.p-nickname")) or username,
        "bio": _text(soup.select_one("div.p-note")),
        "avatar": avatar.get("src") if avatar is not None else None,
        "location": _text(soup.select_one('li[itemprop="homeLocation"]')),
        "followers": parse_count(_text(soup.select_one('a[href$="tab=followers"] span.text-bold'))),
        "following": parse_count(_text(soup.select_one('a[href$="tab=following"] span.text-bold'))),
        "repositories": parse_count(_text(soup.select_one('a[href$="tab=repositories"] span.Counter'))),
        "url": f"{GITHUB}/{username}",
    }


def fetch_page(url: str) -> str:
    """GET a GitHub page; HTTP errors raise ``requests.HTTPError``."""
    response = get_http_session().get(
        url,
        headers={"User-Agent": Config.SCRAPER_USER_AGENT},
        timeout=Config.SCRAPER_TIMEOUT,
    )
    response.raise_for_status()
    return response.text


def _cached_scrape(store: KeyValueStore, key: str, ttl: int, feature: str, url: str, parse: Callable[[str], object]):
    cached = cache_get(store, key)
    if cached is not None:
        return cached

    logger.debug(f"Cache miss for {key}, scraping {url}")
    result = parse(fetch_page(url))
    cache_set(store, key, result, ttl)
    track_usage(store, feature)
    return result


def get_repo(store: KeyValueStore, owner: str, repo: str) -> dict:
    return _cached_scrape(
        store,
        f"repo:{owner}/{repo}",
        Config.REPO_TTL,
        "github_repo",
        f"{GITHUB}/{owner}/{repo}",
        lambda html: parse_repo_page(html, owner, repo),
    )


def _trending_url(path: str, language: Optional[str], since: str) -> str:
    url = f"{GITHUB}/{path}"
    if language:
        url += f"/{language.lower()}"
    return f"{url}?since={since}"


def get_trending_repos(store: KeyValueStore, language: Optional[str], since: str) -> List[dict]:
    return _cached_scrape(
        store,
        f"trending:repos:{(language or 'all').lower()}:{since}",
        Config.TRENDING_TTL,
        "github_trending",
        _trending_url("trending", language, since),
        parse_trending_repos,
    )


def get_trending_developers(store: KeyValueStore, language: Optional[str], since: str) -> List[dict]:
    return _cached_scrape(
        store,
        f"trending:developers:{(language or 'all').lower()}:{since}",
        Config.TRENDING_TTL,
        "github_trending_developers",
        _trending_url("trending/developers", language, since),
        parse_trending_developers,
    )


def get_user(store: KeyValueStore, username: str) -> dict:
    return _cached_scrape(
        store,
        f"user:{username.lower()}",
        Config.USER_TTL,
        "github_user",
        f"{GITHUB}/{username}",
        lambda html: parse_user_page(html, username),
    )
