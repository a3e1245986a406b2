"""
FastAPI Route Handlers
Social Listening Signal Engine
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.schemas import (
    DetectTrendsRequest, TrackHashtagRequest, ViralContentRequest, ClusterRequest,
    MonitorCrisisRequest, SendAlertsRequest, UpdateStatusRequest, AddResponseRequest,
    AssignCrisisRequest, PostMortemRequest, HealthResponse,
)
from config.settings import settings
from models.schemas import (
    ClusterOptions, CrisisConfig, CrisisSeverity, CrisisStatus,
    TrendFilter, TrendStatus, TrendType, ViralOptions,
)
from utils.engine import SignalEngine, build_engine
from utils.timing import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

_engine: Optional[SignalEngine] = None
_engine_lock = threading.Lock()


def get_engine() -> SignalEngine:
    """Lazily-built process-wide engine; tests override this dependency."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_engine()
        return _engine


# ─── Health ──────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["System"])
def health_check():
    return HealthResponse(status="ok", version=settings.APP_VERSION, timestamp=utcnow())


# ─── Trends ──────────────────────────────────────────────────────────────────

@router.post("/workspaces/{workspace_id}/trends/detect", tags=["Trends"])
def detect_trends(workspace_id: str, request: DetectTrendsRequest, engine: SignalEngine = Depends(get_engine)):
    """Score every term in the last 24h against the previous 24h and upsert trends."""
    return engine.trend_tracker.detect_trends(workspace_id, request.platforms).to_dict()


@router.get("/workspaces/{workspace_id}/trends", tags=["Trends"])
def list_trends(
    workspace_id: str,
    type: Optional[TrendType] = None,
    status: Optional[TrendStatus] = None,
    platforms: Optional[List[str]] = Query(None),
    min_growth_rate: Optional[float] = None,
    min_virality_score: Optional[float] = Query(None, ge=0, le=100),
    sort_by: str = "virality_score",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: SignalEngine = Depends(get_engine),
):
    filters = TrendFilter(
        workspace_id=workspace_id,
        type=type,
        status=status,
        platforms=platforms,
        min_growth_rate=min_growth_rate,
        min_virality_score=min_virality_score,
    )
    trends, total = engine.trend_tracker.get_trends(
        filters, sort_by=sort_by, descending=order == "desc", limit=limit, offset=offset,
    )
    return {"trends": [t.to_dict() for t in trends], "total": total, "limit": limit, "offset": offset}


@router.post("/workspaces/{workspace_id}/trends/hashtags", tags=["Trends"])
def track_hashtag(workspace_id: str, request: TrackHashtagRequest, engine: SignalEngine = Depends(get_engine)):
    trend = engine.trend_tracker.track_hashtag_trend(workspace_id, request.hashtag, request.days)
    return {"trend": trend.to_dict() if trend else None}


@router.get("/workspaces/{workspace_id}/trends/velocity", tags=["Trends"])
def growth_velocity(
    workspace_id: str,
    term: str = Query(..., min_length=1),
    window_hours: int = Query(24, ge=1, le=720),
    engine: SignalEngine = Depends(get_engine),
):
    velocity = engine.trend_tracker.calculate_growth_velocity(workspace_id, term, window_hours)
    return {"term": term, "window_hours": window_hours, "growth_velocity": velocity}


# ─── Viral content ───────────────────────────────────────────────────────────

@router.post("/workspaces/{workspace_id}/viral", tags=["Viral"])
def detect_viral(workspace_id: str, request: ViralContentRequest, engine: SignalEngine = Depends(get_engine)):
    options = ViralOptions(
        platforms=request.platforms,
        min_virality_score=request.min_virality_score,
        time_window_hours=request.time_window_hours,
        limit=request.limit,
    )
    content = engine.viral_detector.detect_viral_content(workspace_id, options)
    return {"viral_content": [v.to_dict() for v in content], "count": len(content)}


# ─── Clusters ────────────────────────────────────────────────────────────────

@router.post("/workspaces/{workspace_id}/clusters", tags=["Clusters"])
def cluster_conversations(workspace_id: str, request: ClusterRequest, engine: SignalEngine = Depends(get_engine)):
    options = ClusterOptions(
        min_size=request.min_size,
        min_cohesion=request.min_cohesion,
        days=request.days,
        limit=request.limit,
    )
    clusters = engine.clusterer.cluster_conversations(workspace_id, options)
    return {"clusters": [c.to_dict() for c in clusters], "count": len(clusters)}


@router.get("/workspaces/{workspace_id}/clusters", tags=["Clusters"])
def list_clusters(
    workspace_id: str,
    limit: int = Query(50, ge=1, le=100),
    engine: SignalEngine = Depends(get_engine),
):
    clusters = engine.clusters.find(workspace_id, limit=limit)
    return {"clusters": [c.to_dict() for c in clusters], "count": len(clusters)}


# ─── Crisis detection & reporting ────────────────────────────────────────────

@router.post("/workspaces/{workspace_id}/crisis/monitor", tags=["Crisis"])
def monitor_crisis(workspace_id: str, request: MonitorCrisisRequest, engine: SignalEngine = Depends(get_engine)):
    config = CrisisConfig(
        sentiment_threshold=request.sentiment_threshold,
        volume_threshold=request.volume_threshold,
        time_window=request.time_window,
        min_mentions=request.min_mentions,
        platforms=request.platforms,
    )
    return engine.crisis_detector.monitor_for_crisis(workspace_id, config).to_dict()


@router.get("/workspaces/{workspace_id}/crisis/dashboard", tags=["Crisis"])
def crisis_dashboard(
    workspace_id: str,
    status: Optional[List[CrisisStatus]] = Query(None),
    severity: Optional[List[CrisisSeverity]] = Query(None),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    engine: SignalEngine = Depends(get_engine),
):
    return engine.crisis_manager.get_crisis_dashboard(
        workspace_id, statuses=status, severities=severity, start_date=start_date, end_date=end_date,
    )


@router.get("/workspaces/{workspace_id}/crisis/history", tags=["Crisis"])
def crisis_history(
    workspace_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    include_post_mortems: bool = False,
    engine: SignalEngine = Depends(get_engine),
):
    crises, total, has_more = engine.crisis_manager.get_crisis_history(
        workspace_id, limit=limit, offset=offset, include_post_mortems=include_post_mortems,
    )
    return {"crises": [c.to_dict() for c in crises], "total": total, "has_more": has_more}


# ─── Crisis lifecycle ────────────────────────────────────────────────────────

@router.get("/crises/{crisis_id}", tags=["Crisis"])
def get_crisis(crisis_id: str, engine: SignalEngine = Depends(get_engine)):
    return engine.crisis_manager.get_crisis(crisis_id).to_dict()


@router.post("/crises/{crisis_id}/alerts", tags=["Crisis"])
def send_alerts(crisis_id: str, request: SendAlertsRequest, engine: SignalEngine = Depends(get_engine)):
    result = engine.crisis_manager.send_crisis_alerts(
        crisis_id, request.channels, request.recipients, request.message,
    )
    return result.to_dict()


@router.post("/crises/{crisis_id}/status", tags=["Crisis"])
def update_status(crisis_id: str, request: UpdateStatusRequest, engine: SignalEngine = Depends(get_engine)):
    crisis = engine.crisis_manager.update_crisis_status(
        crisis_id, request.status, user_id=request.user_id, notes=request.notes,
    )
    return crisis.to_dict()


@router.post("/crises/{crisis_id}/responses", tags=["Crisis"])
def add_response(crisis_id: str, request: AddResponseRequest, engine: SignalEngine = Depends(get_engine)):
    crisis = engine.crisis_manager.add_crisis_response(
        crisis_id, request.user_id, request.action, content=request.content, platform=request.platform,
    )
    return crisis.to_dict()


@router.post("/crises/{crisis_id}/assign", tags=["Crisis"])
def assign_crisis(crisis_id: str, request: AssignCrisisRequest, engine: SignalEngine = Depends(get_engine)):
    crisis = engine.crisis_manager.assign_crisis(crisis_id, request.user_ids, assigned_by=request.assigned_by)
    return crisis.to_dict()


@router.post("/crises/{crisis_id}/post-mortem", tags=["Crisis"])
def create_post_mortem(crisis_id: str, request: PostMortemRequest, engine: SignalEngine = Depends(get_engine)):
    crisis = engine.crisis_manager.create_post_mortem(
        crisis_id,
        root_cause=request.root_cause,
        response_effectiveness=request.response_effectiveness,
        lessons_learned=request.lessons_learned,
        preventive_measures=request.preventive_measures,
        created_by=request.created_by,
    )
    return crisis.to_dict()
