from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Literal, Optional, List
from datetime import datetime

Category = Literal[
    "Adventure",
    "Temples",
    "Waterfalls",
    "Beaches",
    "Mountains",
    "Historical",
    "Nature",
    "Urban",
    "Foodie",
    "Wildlife",
]
Difficulty = Literal["Easy", "Moderate", "Hard", "Unknown"]
SpotStatus = Literal["pending", "approved", "rejected"]

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,20}$"


# Auth

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., pattern=USERNAME_PATTERN, examples=["trail_runner"])

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.strip().lower()


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# Users

class LocationIn(BaseModel):
    type: Literal["Point"] = "Point"
    # GeoJSON order: [longitude, latitude]
    coordinates: List[float] = Field(..., min_length=2, max_length=2)

    @field_validator("coordinates")
    @classmethod
    def _valid_coordinates(cls, v: List[float]) -> List[float]:
        lon, lat = v
        if not -180 <= lon <= 180 or not -90 <= lat <= 90:
            raise ValueError("coordinates must be [longitude, latitude] within valid ranges")
        return v


class UserResponse(BaseModel):
    id: int
    email: str
    username: str
    is_admin: bool
    profile_pic: str
    bio: str
    latitude: float
    longitude: float
    interests: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("interest_names", "interests"))
    notifications_enabled: bool
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None
    followers_count: int = 0
    following_count: int = 0
    model_config = ConfigDict(from_attributes=True)


class PublicUserResponse(BaseModel):
    id: int
    username: str
    bio: str
    profile_pic: str
    followers: List[int] = []
    following: List[int] = []


class UserSummary(BaseModel):
    id: int
    username: str
    profile_pic: str = ""
    bio: str = ""
    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthStatusUser(BaseModel):
    user_id: int
    email: str
    username: str
    is_admin: bool


class AuthStatusResponse(BaseModel):
    authenticated: bool = True
    user: AuthStatusUser


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(None, pattern=USERNAME_PATTERN)
    bio: Optional[str] = Field(None, max_length=160)
    profile_pic: Optional[str] = Field(None, max_length=500)
    location: Optional[LocationIn] = None
    interests: Optional[List[Category]] = None
    notifications_enabled: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class InterestsUpdate(BaseModel):
    interests: List[Category]


class UserMessageResponse(BaseModel):
    message: str
    user: UserResponse


class FavoritesResponse(BaseModel):
    favorite_ids: List[int]


class AvatarResponse(BaseModel):
    profile_pic: str


class FavoriteRequest(BaseModel):
    spot_id: int = Field(..., ge=1)


class NotificationToggles(BaseModel):
    comments: bool = True
    likes: bool = True
    follows: bool = True
    recommendations: bool = True


class PrivacyToggles(BaseModel):
    profile_public: bool = True
    share_location: bool = True


class UserSettings(BaseModel):
    notifications: NotificationToggles
    privacy: PrivacyToggles
    notifications_enabled: bool


class NotificationTogglesUpdate(BaseModel):
    comments: Optional[bool] = None
    likes: Optional[bool] = None
    follows: Optional[bool] = None
    recommendations: Optional[bool] = None


class PrivacyTogglesUpdate(BaseModel):
    profile_public: Optional[bool] = None
    share_location: Optional[bool] = None


class UserSettingsUpdate(BaseModel):
    notifications: Optional[NotificationTogglesUpdate] = None
    privacy: Optional[PrivacyTogglesUpdate] = None
    notifications_enabled: Optional[bool] = None


class UserSettingsResponse(BaseModel):
    message: str
    settings: UserSettings


class UserAnalytics(BaseModel):
    total_spots: int
    total_likes: int
    total_followers: int
    total_following: int


class AdminUserAnalytics(BaseModel):
    total_users: int
    active_users: int


class NearbyUser(UserSummary):
    distance_km: float


class PaginatedNearbyUsers(BaseModel):
    items: list[NearbyUser]
    total: int
    page: int
    limit: int
    total_pages: int


class PopularUser(UserSummary):
    followers_count: int
    spots_count: int


class PaginatedPopularUsers(BaseModel):
    items: list[PopularUser]
    total: int
    page: int
    limit: int
    total_pages: int


class PaginatedUsers(BaseModel):
    items: list[UserSummary]
    total: int
    page: int
    limit: int
    total_pages: int


class FollowResponse(BaseModel):
    message: str
    followers_count: int
    following_count: int


# Notifications

class NotificationResponse(BaseModel):
    id: int
    type: str
    related_id: Optional[int] = None
    actor_id: Optional[int] = None
    read: bool
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PaginatedNotifications(BaseModel):
    items: list[NotificationResponse]
    total: int
    unread: int
    page: int
    limit: int
    total_pages: int


# Spots

class SpotReviewCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=500)
    rating: int = Field(..., ge=1, le=5)

    model_config = ConfigDict(str_strip_whitespace=True)


class SpotReviewResponse(BaseModel):
    id: int
    user_id: int
    username: str
    content: str
    rating: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SpotCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    content: str = Field(..., min_length=10, max_length=1000)
    city: str = Field("", max_length=100)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    tags: List[Category] = Field(default_factory=lambda: ["Nature"])
    difficulty: Difficulty = "Unknown"
    best_time_to_visit: str = Field("", max_length=100)
    unique_facts: str = Field("", max_length=500)
    view360_image_url: str = Field("", max_length=500)
    view360_description: str = Field("", max_length=200)
    model_config = ConfigDict(str_strip_whitespace=True)


class SpotUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    content: Optional[str] = Field(None, min_length=10, max_length=1000)
    city: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    tags: Optional[List[Category]] = Field(None, min_length=1)
    difficulty: Optional[Difficulty] = None
    best_time_to_visit: Optional[str] = Field(None, max_length=100)
    unique_facts: Optional[str] = Field(None, max_length=500)
    view360_image_url: Optional[str] = Field(None, max_length=500)
    view360_description: Optional[str] = Field(None, max_length=200)

    model_config = ConfigDict(str_strip_whitespace=True)


class SpotStatusUpdate(BaseModel):
    status: SpotStatus


class SpotReportCreate(BaseModel):
    reason: str = Field(..., min_length=5, max_length=200)

    model_config = ConfigDict(str_strip_whitespace=True)


class SpotResponse(BaseModel):
    id: int
    name: str
    content: str
    city: str
    latitude: float
    longitude: float
    tags: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("tag_names", "tags"))
    difficulty: str
    submitted_by: int
    submitter: Optional[UserSummary] = None
    views: int
    status: str
    best_time_to_visit: str
    unique_facts: str
    average_rating: float
    view360_image_url: str
    view360_description: str
    photos: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("photo_urls", "photos"))
    liked_by: List[int] = []
    reviews: List[SpotReviewResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Only set by feed and geo queries
    interest_score: Optional[int] = None
    distance_km: Optional[float] = None
    model_config = ConfigDict(from_attributes=True)


class PaginatedSpots(BaseModel):
    items: list[SpotResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class SpotEnvelope(BaseModel):
    message: str
    spot: SpotResponse


class SpotPhotosResponse(BaseModel):
    message: str
    photos: List[str]


class NearbySpots(BaseModel):
    spots: list[SpotResponse]


class View360Response(BaseModel):
    image_url: str
    description: str


class CategoryCount(BaseModel):
    name: str
    count: int


class TopSpot(BaseModel):
    id: int
    name: str
    likes: int
    views: int
    # favorites are stored as likes
    saves: int


class SpotAdminAnalytics(BaseModel):
    total_spots: int
    total_posts: int
    top_categories: List[CategoryCount]
    top_spots: List[TopSpot]


class MessageResponse(BaseModel):
    message: str


class LikeResponse(BaseModel):
    message: str
    likes: int


# Community

class PostCommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)


class PostCommentResponse(BaseModel):
    id: int
    user_id: int
    username: str
    text: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    location: str
    tags: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("tag_names", "tags"))
    images: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("image_urls", "images"))
    user: UserSummary
    liked_by: List[int] = []
    comments: List[PostCommentResponse] = []
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PostEnvelope(BaseModel):
    post: PostResponse


class PaginatedPosts(BaseModel):
    items: list[PostResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class TrendingTag(BaseModel):
    name: str
    count: int


class PaginatedPostComments(BaseModel):
    items: list[PostCommentResponse]
    total: int
    page: int
    limit: int
    total_pages: int


# Misc

class NotFoundReport(BaseModel):
    path: str = Field(..., min_length=1, max_length=2000)
    message: Optional[str] = Field(None, max_length=2000)


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
