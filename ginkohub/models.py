"""
Pydantic models for the GinkoHub Tools API
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict


class ErrorResponse(BaseModel):
    """Model for error responses"""
    error: str


# ==================== GitHub ====================

class RepoInfoModel(BaseModel):
    """Model for a scraped repository page"""
    owner: str
    repo: str
    description: str = ""
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    language: Optional[str] = None
    topics: List[str] = []
    url: str


class TrendingRepoModel(BaseModel):
    """Model for one trending repository"""
    owner: str
    name: str
    url: str
    description: str = ""
    language: Optional[str] = None
    stars: int = 0
    forks: int = 0
    stars_today: int = 0


class TrendingDeveloperModel(BaseModel):
    """Model for one trending developer"""
    name: Optional[str] = None
    username: str
    url: str
    avatar: Optional[str] = None
    popular_repo: Optional[str] = None


class UserProfileModel(BaseModel):
    """Model for a scraped user profile"""
    name: Optional[str] = None
    login: str
    bio: Optional[str] = None
    avatar: Optional[str] = None
    location: Optional[str] = None
    followers: int = 0
    following: int = 0
    repositories: int = 0
    url: str


# ==================== Fetch ====================

class FetchStatusModel(BaseModel):
    url: str
    content_type: Optional[str] = None
    http_code: int
    response_time: int


class FetchJsonResponse(BaseModel):
    """Model for ``format=json`` fetch responses"""
    contents: str
    status: FetchStatusModel


class PageMetadataModel(BaseModel):
    """Model for ``format=meta`` fetch responses"""
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    url: str
    site_name: Optional[str] = None
    favicon: Optional[str] = None
    status: int


# ==================== Comments ====================

class CommentModel(BaseModel):
    """Model for a stored comment"""
    id: str
    author: str
    content: str
    timestamp: str
    ups: int = 0
    downs: int = 0


class CommentCreate(BaseModel):
    author: Optional[str] = "Anonymous"
    content: Optional[str] = None


class CommentPostResponse(BaseModel):
    success: bool
    comment: CommentModel


class VoteRequest(BaseModel):
    type: Optional[str] = None


class VoteResponse(BaseModel):
    success: bool
    ups: int
    downs: int


# ==================== Tools ====================

class Base64Request(BaseModel):
    action: Optional[str] = None
    text: Optional[str] = None


class TextRequest(BaseModel):
    text: str


class TextTransformRequest(BaseModel):
    text: str
    action: str


class UnitConversionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: float
    from_unit: str = Field(alias="from")
    to_unit: str = Field(alias="to")
    type: str
    result: float


class TextStatsResponse(BaseModel):
    characters: int
    characters_no_spaces: int
    words: int
    lines: int
    sentences: int
    paragraphs: int
    reading_time_minutes: int


class HitCounterResponse(BaseModel):
    id: str
    label: str
    count: int


class FeedItemModel(BaseModel):
    title: Optional[str] = None
    link: Optional[str] = None
    published: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None


class FeedModel(BaseModel):
    """Model for a parsed RSS/Atom feed"""
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    items: List[FeedItemModel]


# ==================== System / Images ====================

class StorageModel(BaseModel):
    backend: str
    keys: int
    namespaces: Dict[str, int]


class ImageMetadataModel(BaseModel):
    width: int
    height: int
    format: Optional[str] = None
    mime: Optional[str] = None
    mode: str
