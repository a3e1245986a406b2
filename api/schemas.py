"""
Pydantic schemas for API request/response validation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.schemas import AlertChannel, CrisisStatus


# ─── Request Schemas ─────────────────────────────────────────────────────────

class DetectTrendsRequest(BaseModel):
    platforms: Optional[List[str]] = None


class TrackHashtagRequest(BaseModel):
    hashtag: str = Field(..., min_length=1, max_length=255)
    days: int = Field(7, ge=1, le=90)


class ViralContentRequest(BaseModel):
    platforms: Optional[List[str]] = None
    min_virality_score: float = Field(70.0, ge=0, le=100)
    time_window_hours: float = Field(24.0, gt=0, le=168)
    limit: int = Field(20, ge=1, le=100)


class ClusterRequest(BaseModel):
    min_size: int = Field(5, ge=1)
    min_cohesion: float = Field(0.5, ge=0, le=1)
    days: int = Field(7, ge=1, le=90)
    limit: int = Field(20, ge=1, le=100)


class MonitorCrisisRequest(BaseModel):
    sentiment_threshold: float = Field(-0.5, ge=-1, le=1)
    volume_threshold: float = Field(200.0, ge=0)
    time_window: int = Field(60, ge=5, le=1440, description="minutes")
    min_mentions: int = Field(10, ge=1)
    platforms: Optional[List[str]] = None


class SendAlertsRequest(BaseModel):
    channels: List[AlertChannel] = Field(..., min_length=1)
    recipients: List[str] = []
    message: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: CrisisStatus
    user_id: Optional[str] = None
    notes: Optional[str] = None


class AddResponseRequest(BaseModel):
    user_id: str
    action: str = Field(..., min_length=1)
    content: Optional[str] = None
    platform: Optional[str] = None


class AssignCrisisRequest(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    assigned_by: Optional[str] = None


class PostMortemRequest(BaseModel):
    root_cause: str = Field(..., min_length=1)
    response_effectiveness: float = Field(..., ge=0, le=100)
    lessons_learned: List[str] = []
    preventive_measures: List[str] = []
    created_by: str


# ─── Response Schemas ────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error_code: str
    detail: str
