from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Float, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

Base = declarative_base()


SPOT_CATEGORIES = [
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

DEFAULT_INTERESTS = ["Nature", "Waterfalls", "Mountains", "Beaches", "Adventure", "Foodie"]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    username = Column(String(20), unique=True, index=True, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    # Profile
    profile_pic = Column(String, nullable=False, default="")
    bio = Column(String(160), nullable=False, default="")
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    # Per-type notification and privacy toggles
    notify_comments = Column(Boolean, nullable=False, default=True)
    notify_likes = Column(Boolean, nullable=False, default=True)
    notify_follows = Column(Boolean, nullable=False, default=True)
    notify_recommendations = Column(Boolean, nullable=False, default=True)
    profile_public = Column(Boolean, nullable=False, default=True)
    share_location = Column(Boolean, nullable=False, default=True)
    last_active = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    interests = relationship(
        "UserInterest", back_populates="user", cascade="all, delete-orphan",
        lazy="selectin", order_by="UserInterest.id")
    spots = relationship("Spot", back_populates="submitter",
                         cascade="all, delete-orphan")
    posts = relationship("Post", back_populates="user",
                         cascade="all, delete-orphan")

    @property
    def interest_names(self) -> list[str]:
        return [interest.name for interest in self.interests]


class UserInterest(Base):
    __tablename__ = "user_interests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="interests")

    __table_args__ = (UniqueConstraint(
        "user_id", "name", name="uq_user_interest"),)


class Follow(Base):
    __tablename__ = "follows"

    id = Column(Integer, primary_key=True, index=True)
    follower_id = Column(Integer, ForeignKey(
        "users.id", ondelete="CASCADE"), nullable=False, index=True)
    followee_id = Column(Integer, ForeignKey(
        "users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint(
        "follower_id", "followee_id", name="uq_follow_pair"),)


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    jti = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Spot(Base):
    __tablename__ = "spots"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    content = Column(Text, nullable=False)
    city = Column(String(100), nullable=False, default="")
    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    # Easy, Moderate, Hard, Unknown
    difficulty = Column(String, nullable=False, default="Unknown")
    submitted_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                          nullable=False, index=True)
    views = Column(Integer, nullable=False, default=0)
    # pending, approved, rejected
    status = Column(String, nullable=False, default="pending", index=True)
    best_time_to_visit = Column(String(100), nullable=False, default="")
    unique_facts = Column(String(500), nullable=False, default="")
    average_rating = Column(Float, nullable=False, default=0.0)
    view360_image_url = Column(String, nullable=False, default="")
    view360_description = Column(String(200), nullable=False, default="")
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    submitter = relationship("User", back_populates="spots", lazy="selectin")
    tags = relationship("SpotTag", back_populates="spot", cascade="all, delete-orphan",
                        lazy="selectin", order_by="SpotTag.id")
    photos = relationship("SpotPhoto", back_populates="spot", cascade="all, delete-orphan",
                          lazy="selectin", order_by="SpotPhoto.id")
    likes = relationship("SpotLike", back_populates="spot", cascade="all, delete-orphan",
                         lazy="selectin", order_by="SpotLike.id")
    reviews = relationship("SpotReview", back_populates="spot", cascade="all, delete-orphan",
                           lazy="selectin", order_by="SpotReview.id")
    reports = relationship("SpotReport", back_populates="spot", cascade="all, delete-orphan",
                           order_by="SpotReport.id")

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    @property
    def liked_by(self) -> list[int]:
        return [like.user_id for like in self.likes]

    @property
    def photo_urls(self) -> list[str]:
        return [photo.url for photo in self.photos]


class SpotTag(Base):
    __tablename__ = "spot_tags"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    name = Column(String, nullable=False, index=True)

    spot = relationship("Spot", back_populates="tags")


class SpotPhoto(Base):
    __tablename__ = "spot_photos"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    url = Column(String, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    spot = relationship("Spot", back_populates="photos")


class SpotLike(Base):
    __tablename__ = "spot_likes"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    spot = relationship("Spot", back_populates="likes")

    # A user can only like (favorite) a spot once
    __table_args__ = (UniqueConstraint(
        "spot_id", "user_id", name="uq_spot_like"),)


class SpotReview(Base):
    __tablename__ = "spot_reviews"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    # Username at the time of writing
    username = Column(String, nullable=False)
    content = Column(String(500), nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), index=True)

    spot = relationship("Spot", back_populates="reviews")
    user = relationship("User", lazy="selectin")


class SpotReport(Base):
    __tablename__ = "spot_reports"

    id = Column(Integer, primary_key=True, index=True)
    spot_id = Column(Integer, ForeignKey("spots.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    reported_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    reason = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    spot = relationship("Spot", back_populates="reports")


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    content = Column(Text, nullable=False)
    location = Column(String(200), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    # pending, approved, rejected
    status = Column(String, nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="posts", lazy="selectin")
    tags = relationship("PostTag", back_populates="post", cascade="all, delete-orphan",
                        lazy="selectin", order_by="PostTag.id")
    images = relationship("PostImage", back_populates="post", cascade="all, delete-orphan",
                          lazy="selectin", order_by="PostImage.id")
    likes = relationship("PostLike", back_populates="post", cascade="all, delete-orphan",
                         lazy="selectin", order_by="PostLike.id")
    comments = relationship("PostComment", back_populates="post", cascade="all, delete-orphan",
                            lazy="selectin", order_by="PostComment.id")

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    @property
    def image_urls(self) -> list[str]:
        return [image.url for image in self.images]

    @property
    def liked_by(self) -> list[int]:
        return [like.user_id for like in self.likes]


class PostTag(Base):
    __tablename__ = "post_tags"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    name = Column(String(50), nullable=False, index=True)

    post = relationship("Post", back_populates="tags")


class PostImage(Base):
    __tablename__ = "post_images"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    url = Column(String, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    post = relationship("Post", back_populates="images")


class PostLike(Base):
    __tablename__ = "post_likes"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    post = relationship("Post", back_populates="likes")

    __table_args__ = (UniqueConstraint(
        "post_id", "user_id", name="uq_post_like"),)


class PostComment(Base):
    __tablename__ = "post_comments"

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    username = Column(String, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), index=True)

    post = relationship("Post", back_populates="comments")
    user = relationship("User", lazy="selectin")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False, index=True)
    # like, comment, follow, post
    type = Column(String, nullable=False, index=True)
    # Spot, post or user id depending on type
    related_id = Column(Integer, nullable=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"),
                      nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), index=True)
