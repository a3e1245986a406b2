"""
SQLAlchemy ORM Models
Social Listening Signal Engine
"""

from sqlalchemy import (
    Column, Integer, Float, String, Text, Boolean,
    DateTime, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from utils.timing import utcnow
import uuid

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


class MentionRow(Base):
    """Mentions are written by the external collector; the engine only reads them."""
    __tablename__ = "mention"

    mention_id = Column(String(64), primary_key=True)
    workspace_id = Column(String(64), nullable=False)
    platform = Column(String(50), nullable=False)
    content = Column(Text, nullable=False, default="")
    author_id = Column(String(255), default="")
    author_username = Column(String(255), default="")
    author_followers = Column(Integer, default=0)
    is_influencer = Column(Boolean, default=False)
    likes = Column(Integer, default=0)
    comments = Column(Integer, default=0)
    shares = Column(Integer, default=0)
    reach = Column(Integer, default=0)
    sentiment = Column(String(20))          # POSITIVE, NEUTRAL, NEGATIVE
    sentiment_score = Column(Float)
    tags = Column(JSON(none_as_null=True))
    published_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_mention_workspace_published", "workspace_id", "published_at"),
    )


class TrendRow(Base):
    __tablename__ = "trend"

    trend_id = Column(String(32), primary_key=True, default=_new_id)
    workspace_id = Column(String(64), nullable=False)
    term = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    platforms = Column(JSON(none_as_null=True))
    current_volume = Column(Integer, default=0)
    previous_volume = Column(Integer, default=0)
    peak_volume = Column(Integer, default=0)
    growth_rate = Column(Float, default=0.0)
    growth_velocity = Column(Float, default=0.0)
    momentum = Column(Float, default=0.0)
    virality_score = Column(Float, default=0.0)
    total_engagement = Column(Integer, default=0)
    average_engagement = Column(Float, default=0.0)
    reach = Column(Integer, default=0)
    sentiment_score = Column(Float, default=0.0)
    sentiment_breakdown = Column(JSON(none_as_null=True))
    influencer_count = Column(Integer, default=0)
    top_influencers = Column(JSON(none_as_null=True))
    first_seen_at = Column(DateTime, nullable=False)
    last_seen_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    expires_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("workspace_id", "term", name="uq_trend_workspace_term"),
        Index("ix_trend_workspace_active", "workspace_id", "is_active"),
        Index("ix_trend_virality", "virality_score"),
    )


class ClusterRow(Base):
    __tablename__ = "conversation_cluster"

    cluster_id = Column(String(32), primary_key=True, default=_new_id)
    workspace_id = Column(String(64), nullable=False)
    name = Column(String(255))
    description = Column(Text)
    keywords = Column(JSON(none_as_null=True))
    hashtags = Column(JSON(none_as_null=True))
    mention_ids = Column(JSON(none_as_null=True))
    size = Column(Integer, default=0)
    cohesion_score = Column(Float, default=0.0)
    diversity_score = Column(Float, default=0.0)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    peak_date = Column(DateTime)
    peak_volume = Column(Integer, default=0)
    total_engagement = Column(Integer, default=0)
    average_engagement = Column(Float, default=0.0)
    total_reach = Column(Integer, default=0)
    average_sentiment = Column(Float, default=0.0)
    sentiment_distribution = Column(JSON(none_as_null=True))
    platform_distribution = Column(JSON(none_as_null=True))
    top_contributors = Column(JSON(none_as_null=True))
    topics = Column(JSON(none_as_null=True))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_cluster_workspace_created", "workspace_id", "created_at"),
    )


class CrisisRow(Base):
    __tablename__ = "crisis"

    crisis_id = Column(String(32), primary_key=True, default=_new_id)
    workspace_id = Column(String(64), nullable=False)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    crisis_score = Column(Integer, default=0)
    sentiment_score = Column(Float, default=0.0)
    sentiment_change = Column(Float, default=0.0)
    volume_change = Column(Float, default=0.0)
    baseline_sentiment = Column(Float, default=0.0)
    baseline_volume = Column(Integer, default=0)
    negative_mention_count = Column(Integer, default=0)
    negative_mention_percentage = Column(Float, default=0.0)
    mention_volume = Column(Integer, default=0)
    peak_volume = Column(Integer, default=0)
    platforms = Column(JSON(none_as_null=True))
    keywords = Column(JSON(none_as_null=True))
    hashtags = Column(JSON(none_as_null=True))
    influencer_count = Column(Integer, default=0)
    top_influencers = Column(JSON(none_as_null=True))
    mention_ids = Column(JSON(none_as_null=True))
    sample_mentions = Column(JSON(none_as_null=True))
    responses = Column(JSON(none_as_null=True))
    assigned_to = Column(JSON(none_as_null=True))
    team_members = Column(JSON(none_as_null=True))
    alerts = Column(JSON(none_as_null=True))
    alerts_sent = Column(Boolean, default=False)
    timeline = Column(JSON(none_as_null=True))
    estimated_reach = Column(Integer, default=0)
    total_engagement = Column(Integer, default=0)
    detection_config = Column(JSON(none_as_null=True))
    post_mortem = Column(JSON(none_as_null=True))
    is_active = Column(Boolean, default=True)
    detected_at = Column(DateTime, nullable=False)
    acknowledged_at = Column(DateTime)
    resolved_at = Column(DateTime)

    __table_args__ = (
        Index("ix_crisis_workspace_detected", "workspace_id", "detected_at"),
        Index("ix_crisis_workspace_status", "workspace_id", "status"),
    )
