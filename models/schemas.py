"""
Core data models / schemas for the Social Listening Signal Engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from models.errors import InvalidConfig


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Sentiment(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


SENTIMENT_VALUES = {
    Sentiment.POSITIVE: 1.0,
    Sentiment.NEUTRAL: 0.0,
    Sentiment.NEGATIVE: -1.0,
}


class TrendType(str, Enum):
    HASHTAG = "hashtag"
    TOPIC = "topic"
    KEYWORD = "keyword"
    CONVERSATION = "conversation"


class TrendStatus(str, Enum):
    EMERGING = "emerging"
    RISING = "rising"
    STABLE = "stable"
    DECLINING = "declining"
    VIRAL = "viral"


class CrisisType(str, Enum):
    SENTIMENT_SPIKE = "sentiment_spike"
    VOLUME_ANOMALY = "volume_anomaly"
    NEGATIVE_TREND = "negative_trend"
    INFLUENCER_BACKLASH = "influencer_backlash"
    VIRAL_NEGATIVE = "viral_negative"
    PRODUCT_ISSUE = "product_issue"
    SERVICE_OUTAGE = "service_outage"
    PR_INCIDENT = "pr_incident"
    SECURITY_BREACH = "security_breach"
    OTHER = "other"


CRISIS_TYPE_LABELS = {
    CrisisType.SENTIMENT_SPIKE: "Sentiment Spike",
    CrisisType.VOLUME_ANOMALY: "Volume Surge",
    CrisisType.NEGATIVE_TREND: "Negative Trend",
    CrisisType.INFLUENCER_BACKLASH: "Influencer Backlash",
    CrisisType.VIRAL_NEGATIVE: "Viral Negative Content",
    CrisisType.PRODUCT_ISSUE: "Product Issue",
    CrisisType.SERVICE_OUTAGE: "Service Outage",
    CrisisType.PR_INCIDENT: "PR Incident",
    CrisisType.SECURITY_BREACH: "Security Breach",
    CrisisType.OTHER: "Crisis",
}


class CrisisSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def level(self) -> int:
        return _SEVERITY_LEVELS[self]

    @classmethod
    def from_level(cls, level: int) -> "CrisisSeverity":
        if level >= 4:
            return cls.CRITICAL
        if level >= 3:
            return cls.HIGH
        if level >= 2:
            return cls.MEDIUM
        return cls.LOW


_SEVERITY_LEVELS = {
    CrisisSeverity.LOW: 1,
    CrisisSeverity.MEDIUM: 2,
    CrisisSeverity.HIGH: 3,
    CrisisSeverity.CRITICAL: 4,
}


class CrisisStatus(str, Enum):
    DETECTED = "detected"
    ACKNOWLEDGED = "acknowledged"
    RESPONDING = "responding"
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"

    @property
    def is_terminal(self) -> bool:
        return self in (CrisisStatus.RESOLVED, CrisisStatus.FALSE_ALARM)


ACTIVE_CRISIS_STATUSES = (
    CrisisStatus.DETECTED,
    CrisisStatus.ACKNOWLEDGED,
    CrisisStatus.RESPONDING,
)


class AlertChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    SLACK = "slack"
    WEBHOOK = "webhook"


# ---------------------------------------------------------------------------
# Input: mentions (read-only)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Mention:
    id: str
    workspace_id: str
    platform: str
    content: str
    published_at: datetime
    author_id: str = ""
    author_username: str = ""
    author_followers: int = 0
    is_influencer: bool = False
    likes: int = 0
    comments: int = 0
    shares: int = 0
    reach: int = 0
    sentiment: Optional[Sentiment] = None
    sentiment_score: Optional[float] = None    # -1 to +1
    tags: frozenset = frozenset()

    @property
    def engagement(self) -> int:
        return self.likes + self.comments + self.shares


@dataclass(frozen=True)
class TimeRange:
    """Half-open interval [start, end). `end=None` means unbounded."""
    start: datetime
    end: Optional[datetime] = None

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        return self.end is None or moment < self.end


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------

@dataclass
class Trend:
    workspace_id: str
    term: str
    type: TrendType
    status: TrendStatus
    first_seen_at: datetime
    last_seen_at: datetime
    platforms: List[str] = field(default_factory=list)
    current_volume: int = 0
    previous_volume: int = 0
    peak_volume: int = 0
    growth_rate: float = 0.0          # percent
    growth_velocity: float = 0.0
    momentum: float = 0.0             # 0-100
    virality_score: float = 0.0       # 0-100
    total_engagement: int = 0
    average_engagement: float = 0.0
    reach: int = 0
    sentiment_score: float = 0.0      # -1 to +1
    sentiment_breakdown: Dict[str, int] = field(default_factory=dict)
    influencer_count: int = 0
    top_influencers: List[str] = field(default_factory=list)
    is_active: bool = True
    expires_at: Optional[datetime] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "term": self.term,
            "type": self.type.value,
            "status": self.status.value,
            "platforms": list(self.platforms),
            "current_volume": self.current_volume,
            "previous_volume": self.previous_volume,
            "peak_volume": self.peak_volume,
            "growth_rate": round(self.growth_rate, 4),
            "growth_velocity": round(self.growth_velocity, 4),
            "momentum": round(self.momentum, 4),
            "virality_score": round(self.virality_score, 4),
            "total_engagement": self.total_engagement,
            "average_engagement": round(self.average_engagement, 4),
            "reach": self.reach,
            "sentiment_score": round(self.sentiment_score, 4),
            "sentiment_breakdown": dict(self.sentiment_breakdown),
            "influencer_count": self.influencer_count,
            "top_influencers": list(self.top_influencers),
            "first_seen_at": _iso(self.first_seen_at),
            "last_seen_at": _iso(self.last_seen_at),
            "is_active": self.is_active,
            "expires_at": _iso(self.expires_at),
        }


@dataclass
class TrendSummary:
    total: int = 0
    emerging: int = 0
    rising: int = 0
    viral: int = 0
    declining: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "emerging": self.emerging,
            "rising": self.rising,
            "viral": self.viral,
            "declining": self.declining,
        }


@dataclass
class TrendDetectionResult:
    trends: List[Trend]
    summary: TrendSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trends": [t.to_dict() for t in self.trends],
            "summary": self.summary.to_dict(),
        }


@dataclass
class TrendFilter:
    """Listing filter for persisted trends (active trends only)."""
    workspace_id: str
    type: Optional[TrendType] = None
    status: Optional[TrendStatus] = None
    platforms: Optional[List[str]] = None
    min_growth_rate: Optional[float] = None
    min_virality_score: Optional[float] = None


# ---------------------------------------------------------------------------
# Viral content
# ---------------------------------------------------------------------------

@dataclass
class ViralOptions:
    platforms: Optional[List[str]] = None
    min_virality_score: float = 70.0
    time_window_hours: float = 24.0
    limit: int = 20

    def __post_init__(self):
        if not 0 <= self.min_virality_score <= 100:
            raise InvalidConfig("min_virality_score must be within [0, 100]", "min_virality_score")
        if self.time_window_hours <= 0:
            raise InvalidConfig("time_window_hours must be positive", "time_window_hours")
        if self.limit < 1:
            raise InvalidConfig("limit must be at least 1", "limit")


@dataclass
class ViralContent:
    mention_id: str
    platform: str
    content: str
    author_username: str
    author_followers: int
    virality_score: float
    engagement: int
    reach: int
    engagement_velocity: float        # engagement per hour
    published_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mention_id": self.mention_id,
            "platform": self.platform,
            "content": self.content,
            "author": {
                "username": self.author_username,
                "followers": self.author_followers,
            },
            "virality_score": round(self.virality_score, 4),
            "engagement": self.engagement,
            "reach": self.reach,
            "engagement_velocity": round(self.engagement_velocity, 4),
            "published_at": _iso(self.published_at),
        }


# ---------------------------------------------------------------------------
# Conversation clusters
# ---------------------------------------------------------------------------

@dataclass
class ClusterOptions:
    min_size: int = 5
    min_cohesion: float = 0.5
    days: int = 7
    limit: int = 20

    def __post_init__(self):
        if self.min_size < 1:
            raise InvalidConfig("min_size must be at least 1", "min_size")
        if not 0.0 <= self.min_cohesion <= 1.0:
            raise InvalidConfig("min_cohesion must be within [0, 1]", "min_cohesion")
        if self.days < 1:
            raise InvalidConfig("days must be at least 1", "days")
        if self.limit < 1:
            raise InvalidConfig("limit must be at least 1", "limit")


@dataclass
class ConversationCluster:
    workspace_id: str
    name: str
    description: str
    keywords: List[str]                 # top keywords by frequency
    hashtags: List[str]
    mention_ids: List[str]
    size: int                           # == len(mention_ids)
    cohesion_score: float               # mean pairwise Jaccard [0, 1]
    diversity_score: float              # unique authors / size
    start_date: datetime
    end_date: datetime
    peak_date: datetime
    peak_volume: int
    total_engagement: int
    average_engagement: float
    total_reach: int
    average_sentiment: float
    sentiment_distribution: Dict[str, int] = field(default_factory=dict)
    platform_distribution: Dict[str, int] = field(default_factory=dict)
    top_contributors: List[Dict[str, Any]] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
            "hashtags": list(self.hashtags),
            "mention_ids": list(self.mention_ids),
            "size": self.size,
            "cohesion_score": round(self.cohesion_score, 4),
            "diversity_score": round(self.diversity_score, 4),
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "peak_date": _iso(self.peak_date),
            "peak_volume": self.peak_volume,
            "total_engagement": self.total_engagement,
            "average_engagement": round(self.average_engagement, 4),
            "total_reach": self.total_reach,
            "average_sentiment": round(self.average_sentiment, 4),
            "sentiment_distribution": dict(self.sentiment_distribution),
            "platform_distribution": dict(self.platform_distribution),
            "top_contributors": list(self.top_contributors),
            "topics": list(self.topics),
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------------
# Crises
# ---------------------------------------------------------------------------

@dataclass
class CrisisConfig:
    sentiment_threshold: float = -0.5
    volume_threshold: float = 200.0     # percent
    time_window: int = 60               # minutes
    min_mentions: int = 10
    platforms: Optional[List[str]] = None

    def __post_init__(self):
        if not -1.0 <= self.sentiment_threshold <= 1.0:
            raise InvalidConfig("sentiment_threshold must be within [-1, 1]", "sentiment_threshold")
        if self.volume_threshold < 0:
            raise InvalidConfig("volume_threshold must be non-negative", "volume_threshold")
        if not 5 <= self.time_window <= 1440:
            raise InvalidConfig("time_window must be within [5, 1440] minutes", "time_window")
        if self.min_mentions < 1:
            raise InvalidConfig("min_mentions must be at least 1", "min_mentions")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment_threshold": self.sentiment_threshold,
            "volume_threshold": self.volume_threshold,
            "time_window": self.time_window,
            "min_mentions": self.min_mentions,
        }


@dataclass
class TimelineEntry:
    timestamp: datetime
    event: str
    description: str
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "event": self.event,
            "description": self.description,
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineEntry":
        return cls(
            timestamp=_parse_dt(data["timestamp"]),
            event=data["event"],
            description=data["description"],
            user_id=data.get("user_id"),
        )


@dataclass
class CrisisResponse:
    timestamp: datetime
    user_id: str
    action: str
    content: Optional[str] = None
    platform: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "user_id": self.user_id,
            "action": self.action,
            "content": self.content,
            "platform": self.platform,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrisisResponse":
        return cls(
            timestamp=_parse_dt(data["timestamp"]),
            user_id=data["user_id"],
            action=data["action"],
            content=data.get("content"),
            platform=data.get("platform"),
        )


@dataclass
class AlertChannelResult:
    channel: AlertChannel
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"channel": self.channel.value, "success": self.success, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertChannelResult":
        return cls(
            channel=AlertChannel(data["channel"]),
            success=data["success"],
            error=data.get("error"),
        )


@dataclass
class AlertRecord:
    channels: List[AlertChannel]
    sent_at: datetime
    recipients: List[str]
    success: bool
    results: List[AlertChannelResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channels": [c.value for c in self.channels],
            "sent_at": _iso(self.sent_at),
            "recipients": list(self.recipients),
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRecord":
        return cls(
            channels=[AlertChannel(c) for c in data["channels"]],
            sent_at=_parse_dt(data["sent_at"]),
            recipients=list(data["recipients"]),
            success=data["success"],
            results=[AlertChannelResult.from_dict(r) for r in data.get("results", [])],
        )


@dataclass
class AlertSendResult:
    success: bool
    results: List[AlertChannelResult]

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "results": [r.to_dict() for r in self.results]}


@dataclass
class PostMortem:
    root_cause: str
    response_effectiveness: float       # 0-100
    lessons_learned: List[str]
    preventive_measures: List[str]
    response_time_minutes: int
    resolution_time_minutes: int
    created_by: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root_cause": self.root_cause,
            "response_effectiveness": self.response_effectiveness,
            "lessons_learned": list(self.lessons_learned),
            "preventive_measures": list(self.preventive_measures),
            "response_time_minutes": self.response_time_minutes,
            "resolution_time_minutes": self.resolution_time_minutes,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostMortem":
        return cls(
            root_cause=data["root_cause"],
            response_effectiveness=data["response_effectiveness"],
            lessons_learned=list(data["lessons_learned"]),
            preventive_measures=list(data["preventive_measures"]),
            response_time_minutes=data["response_time_minutes"],
            resolution_time_minutes=data["resolution_time_minutes"],
            created_by=data["created_by"],
            created_at=_parse_dt(data["created_at"]),
        )


@dataclass
class Crisis:
    workspace_id: str
    title: str
    description: str
    type: CrisisType
    severity: CrisisSeverity
    status: CrisisStatus
    detected_at: datetime
    crisis_score: int                       # 0-100
    sentiment_score: float
    sentiment_change: float
    volume_change: float                    # percent
    baseline_sentiment: float
    baseline_volume: int
    negative_mention_count: int = 0
    negative_mention_percentage: float = 0.0
    mention_volume: int = 0
    peak_volume: int = 0
    platforms: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    influencer_count: int = 0
    top_influencers: List[Dict[str, Any]] = field(default_factory=list)
    mention_ids: List[str] = field(default_factory=list)
    sample_mentions: List[str] = field(default_factory=list)
    responses: List[CrisisResponse] = field(default_factory=list)
    assigned_to: List[str] = field(default_factory=list)
    team_members: List[str] = field(default_factory=list)
    alerts: List[AlertRecord] = field(default_factory=list)
    alerts_sent: bool = False
    timeline: List[TimelineEntry] = field(default_factory=list)
    estimated_reach: int = 0
    total_engagement: int = 0
    detection_config: Dict[str, Any] = field(default_factory=dict)
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    post_mortem: Optional[PostMortem] = None
    is_active: bool = True
    id: Optional[str] = None

    def add_timeline(self, timestamp: datetime, event: str, description: str,
                     user_id: Optional[str] = None) -> None:
        self.timeline.append(TimelineEntry(timestamp, event, description, user_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "detected_at": _iso(self.detected_at),
            "acknowledged_at": _iso(self.acknowledged_at),
            "resolved_at": _iso(self.resolved_at),
            "crisis_score": self.crisis_score,
            "sentiment_score": round(self.sentiment_score, 4),
            "sentiment_change": round(self.sentiment_change, 4),
            "volume_change": round(self.volume_change, 4),
            "baseline_sentiment": round(self.baseline_sentiment, 4),
            "baseline_volume": self.baseline_volume,
            "negative_mention_count": self.negative_mention_count,
            "negative_mention_percentage": round(self.negative_mention_percentage, 4),
            "mention_volume": self.mention_volume,
            "peak_volume": self.peak_volume,
            "platforms": list(self.platforms),
            "keywords": list(self.keywords),
            "hashtags": list(self.hashtags),
            "influencer_count": self.influencer_count,
            "top_influencers": list(self.top_influencers),
            "mention_ids": list(self.mention_ids),
            "sample_mentions": list(self.sample_mentions),
            "responses": [r.to_dict() for r in self.responses],
            "assigned_to": list(self.assigned_to),
            "team_members": list(self.team_members),
            "alerts": [a.to_dict() for a in self.alerts],
            "alerts_sent": self.alerts_sent,
            "timeline": [t.to_dict() for t in self.timeline],
            "estimated_reach": self.estimated_reach,
            "total_engagement": self.total_engagement,
            "detection_config": dict(self.detection_config),
            "post_mortem": self.post_mortem.to_dict() if self.post_mortem else None,
            "is_active": self.is_active,
        }


@dataclass
class AnomalyResult:
    is_anomaly: bool
    kind: str                   # "sentiment" | "volume"
    severity: CrisisSeverity
    score: float
    current_value: float
    baseline: float
    change: float
    threshold: float


@dataclass
class CrisisMetrics:
    sentiment_score: float = 0.0
    sentiment_change: float = 0.0
    volume_change: float = 0.0
    crisis_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment_score": round(self.sentiment_score, 4),
            "sentiment_change": round(self.sentiment_change, 4),
            "volume_change": round(self.volume_change, 4),
            "crisis_score": self.crisis_score,
        }


@dataclass
class CrisisDetectionResult:
    crisis_detected: bool
    metrics: CrisisMetrics
    crisis: Optional[Crisis] = None
    insufficient_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "crisis_detected": self.crisis_detected,
            "crisis": self.crisis.to_dict() if self.crisis else None,
            "metrics": self.metrics.to_dict(),
            "insufficient_data": self.insufficient_data,
        }


@dataclass
class CrisisFilter:
    workspace_id: str
    statuses: Optional[List[CrisisStatus]] = None
    severities: Optional[List[CrisisSeverity]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    has_post_mortem: Optional[bool] = None


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

@dataclass
class WorkspaceJob:
    """Input envelope for one agent run over one workspace."""
    workspace_id: str
    options: Any = None


@dataclass
class WorkspaceConfig:
    workspace_id: str
    name: str = ""
    crisis_config: CrisisConfig = field(default_factory=CrisisConfig)
    auto_alerts: bool = True
    alert_channels: Optional[List[AlertChannel]] = None
    alert_recipients: List[str] = field(default_factory=list)
