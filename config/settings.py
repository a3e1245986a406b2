"""
Configuration & Settings
Social Listening Signal Engine
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List


class Settings(BaseSettings):
    """Defaults below; any key can be overridden with a SIGNAL_<NAME> environment variable."""

    # App
    APP_NAME: str = "Social Listening Signal Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./signal_engine.db"

    # Term extraction
    MIN_TERM_LENGTH: int = 4
    MIN_TREND_VOLUME: int = 5

    # Trend tracking
    TREND_WINDOW_HOURS: int = 24
    TREND_STALE_DAYS: int = 7
    TREND_RETENTION_DAYS: int = 30
    TRENDS_PAGE_LIMIT: int = 50
    HASHTAG_TRACK_DAYS: int = 7

    # Viral content
    VIRAL_MIN_SCORE: float = 70.0
    VIRAL_WINDOW_HOURS: float = 24.0
    VIRAL_LIMIT: int = 20

    # Conversation clustering
    CLUSTER_MIN_SIZE: int = 5
    CLUSTER_MIN_COHESION: float = 0.5
    CLUSTER_DAYS: int = 7
    CLUSTER_LIMIT: int = 20
    SCHEDULED_CLUSTER_LIMIT: int = 50

    # Crisis detection
    # CRISIS_VOLUME_THRESHOLD is a percentage increase over the baseline window.
    CRISIS_SENTIMENT_THRESHOLD: float = -0.5
    CRISIS_VOLUME_THRESHOLD: float = 200.0
    CRISIS_TIME_WINDOW_MINUTES: int = 60
    CRISIS_MIN_MENTIONS: int = 10
    CRISIS_SCORE_THRESHOLD: int = 50
    CRISIS_ALERT_CHANNELS: List[str] = ["email", "push"]

    # Scheduling
    TREND_INTERVAL_SECONDS: int = 3600
    CRISIS_INTERVAL_SECONDS: int = 300
    CLUSTER_INTERVAL_SECONDS: int = 21600
    CLEANUP_INTERVAL_SECONDS: int = 86400
    MAX_CONCURRENT_WORKSPACES: int = 4
    WORKSPACE_JOB_TIMEOUT_SECONDS: float = 120.0
    REPOSITORY_TIMEOUT_SECONDS: float = 30.0
    ALERT_TIMEOUT_SECONDS: float = 10.0
    ALERT_MAX_RETRIES: int = 2
    USER_AGENT: str = "SignalEngine/1.0 (+alerts)"

    # Alerts: channel name -> HTTP endpoint
    ALERT_ENDPOINTS: Dict[str, str] = {}

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    model_config = SettingsConfigDict(env_prefix="SIGNAL_", extra="ignore")


settings = Settings()
