from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case names still work in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Auth ---

class RegisterRequest(CamelModel):
    username: str = Field(min_length=1, max_length=20)
    email: EmailStr
    password: str = Field(min_length=4, max_length=20)
    name: str | None = Field(None, min_length=1, max_length=45)


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, max_length=20)
    password: str = Field(min_length=4, max_length=20)


# --- User ---

class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    name: str | None = None
    bio: str | None = None
    image: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class UserUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=45)
    username: str | None = Field(None, min_length=1, max_length=20)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=4, max_length=20)
    confirm_password: str | None = None
    bio: str | None = None
    image: str | None = Field(None, max_length=500, pattern=r"^https?://")


class ApiResponse(BaseModel):
    status: str = "success"
    message: str
    result: dict | None = None


# --- Profile ---

class Profile(CamelModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: Profile


# --- Article ---

TagName = Annotated[str, Field(max_length=50)]


class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(None, min_length=1, max_length=500)
    body: str = Field(min_length=1)
    tag_list: list[TagName] = Field(default_factory=list)
    is_draft: bool = True


class ArticleUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=500)
    body: str | None = Field(None, min_length=1)
    tag_list: list[TagName] | None = None
    is_draft: bool | None = None


class ArticleView(CamelModel):
    id: int
    slug: str
    title: str
    description: str | None = None
    body: str
    tag_list: list[str] = []
    is_draft: bool
    favorited: bool = False
    favorites_count: int = 0
    author_id: int
    author: Profile
    created_at: datetime
    updated_at: datetime | None = None


class ArticleResponse(BaseModel):
    article: ArticleView


class ArticleListResponse(CamelModel):
    articles: list[ArticleView]
    articles_count: int


# --- Comment ---

class CommentCreate(CamelModel):
    body: str = Field(min_length=1)


class CommentView(CamelModel):
    id: int
    body: str
    author: Profile
    created_at: datetime
    updated_at: datetime | None = None


class CommentResponse(BaseModel):
    comment: CommentView


class CommentListResponse(BaseModel):
    comments: list[CommentView]


# --- Misc ---

class MessageResponse(BaseModel):
    message: str


class TagListResponse(BaseModel):
    tags: list[str]
