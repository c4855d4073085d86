from typing import List, Optional, Union
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, field_validator


class RegisterIn(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def username_shape(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3 or len(value) > 50:
            raise ValueError("must be between 3 and 50 characters")
        if not value.replace("_", "").replace("-", "").isalnum():
            raise ValueError("may only contain letters, digits, '-' and '_'")
        return value

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < 6:
            raise ValueError("must be at least 6 characters")
        return value


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    token: str


class MessageOut(BaseModel):
    message: str


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = Field(None, alias="profilePicture")

    class Config:
        populate_by_name = True


class UserStats(BaseModel):
    reviews: int = 0
    lists: int = 0
    games_played: int = 0


class UserOut(BaseModel):
    id: str
    username: str
    email: EmailStr
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MeOut(UserOut):
    stats: UserStats


class UserPublicOut(BaseModel):
    id: str
    username: str
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None
    stats: UserStats


class UserSummary(BaseModel):
    id: str
    username: str
    profile_picture: Optional[str] = None


class GameSummary(BaseModel):
    id: str
    igdb_id: Optional[int] = None
    title: str
    slug: Optional[str] = None
    cover_image: Optional[str] = None
    release_date: Optional[date] = None


class GameCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    igdb_id: Optional[int] = Field(None, alias="igdbId", gt=0, le=2**63 - 1)
    slug: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = Field(None, alias="coverImage")
    release_date: Optional[date] = Field(None, alias="releaseDate")
    genres: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    developer: Optional[str] = None
    publisher: Optional[str] = None

    class Config:
        populate_by_name = True


class GameOut(BaseModel):
    id: str
    igdb_id: Optional[int] = None
    title: str
    slug: Optional[str] = None
    description: Optional[str] = None
    cover_image: Optional[str] = None
    release_date: Optional[date] = None
    genres: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    developer: Optional[str] = None
    publisher: Optional[str] = None
    average_rating: float = 0.0
    is_remote: bool = False

    class Config:
        from_attributes = True


class RemoteGameOut(GameOut):
    local_id: Optional[str] = None
    is_remote: bool = True


class ReviewCreate(BaseModel):
    game_id: Union[int, str] = Field(..., alias="gameId")
    rating: int = Field(..., ge=1, le=5)
    text: Optional[str] = Field(None, max_length=10000)

    class Config:
        populate_by_name = True


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    text: Optional[str] = Field(None, max_length=10000)


class ReviewOut(BaseModel):
    id: str
    user_id: str
    game_id: str
    rating: int
    text: Optional[str] = None
    likes_count: int = 0
    created_at: datetime
    updated_at: datetime
    user: Optional[UserSummary] = None
    game: Optional[GameSummary] = None


class LikeOut(BaseModel):
    message: str
    likes_count: int


class Pagination(BaseModel):
    current: int
    total: int
    count: int


class ReviewPage(BaseModel):
    reviews: List[ReviewOut]
    pagination: Pagination


class ListCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ListUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None


class ListAddGame(BaseModel):
    game_id: Union[int, str] = Field(..., alias="gameId")

    class Config:
        populate_by_name = True


class ListOut(BaseModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    is_custom: bool
    game_ids: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ListDetailOut(ListOut):
    user: Optional[UserSummary] = None
    games: List[GameOut] = Field(default_factory=list)


class GamePreview(BaseModel):
    title: str
    cover_image: Optional[str] = None


class ListPreviewOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    game_count: int
    comment_count: Optional[int] = None
    preview_games: List[GamePreview]
    user: Optional[UserSummary] = None
    created_at: datetime


class DiscoverPage(BaseModel):
    lists: List[ListPreviewOut]
    pagination: Pagination


class GameStatusIn(BaseModel):
    game_id: Optional[Union[int, str]] = Field(None, alias="gameId")
    status: Optional[str] = None

    class Config:
        populate_by_name = True


class GameStatusOut(BaseModel):
    status: str
    game: str


class GameStatusValueOut(BaseModel):
    status: Optional[str] = None


class GameStatusEntryOut(BaseModel):
    id: str
    status: str
    game: Optional[GameSummary] = None
    updated_at: datetime


class GameStatusGroupsOut(BaseModel):
    played: List[GameStatusEntryOut] = Field(default_factory=list)
    playing: List[GameStatusEntryOut] = Field(default_factory=list)
    want_to_play: List[GameStatusEntryOut] = Field(default_factory=list)


class GameStatusCountsOut(BaseModel):
    played: int = 0
    playing: int = 0
    want_to_play: int = 0
    total: int = 0


class CommentIn(BaseModel):
    text: Optional[str] = None


class CommentOut(BaseModel):
    id: str
    list_id: str
    user_id: str
    text: str
    created_at: datetime
    user: Optional[UserSummary] = None


class MemberOut(BaseModel):
    id: str
    username: str
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    created_at: Optional[datetime] = None
    stats: UserStats
    recent_games: List[GamePreview]


class MemberPage(BaseModel):
    members: List[MemberOut]
    pagination: Pagination


class SiteStatsOut(BaseModel):
    games: int
    reviews: int
    lists: int
    members: int
