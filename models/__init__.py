"""
Core data models for the Social Listening Signal Engine.
"""

from .errors import (
    SignalEngineError,
    InvalidConfig,
    RepositoryFailure,
    RepositoryTimeout,
    PreconditionFailed,
    CrisisNotFound,
    DownstreamAlertFailure,
)
from .schemas import (
    Sentiment,
    TrendType,
    TrendStatus,
    CrisisType,
    CrisisSeverity,
    CrisisStatus,
    AlertChannel,
    Mention,
    TimeRange,
    Trend,
    TrendDetectionResult,
    ConversationCluster,
    Crisis,
    CrisisDetectionResult,
)

__all__ = [
    "SignalEngineError",
    "InvalidConfig",
    "RepositoryFailure",
    "RepositoryTimeout",
    "PreconditionFailed",
    "CrisisNotFound",
    "DownstreamAlertFailure",
    "Sentiment",
    "TrendType",
    "TrendStatus",
    "CrisisType",
    "CrisisSeverity",
    "CrisisStatus",
    "AlertChannel",
    "Mention",
    "TimeRange",
    "Trend",
    "TrendDetectionResult",
    "ConversationCluster",
    "Crisis",
    "CrisisDetectionResult",
]
