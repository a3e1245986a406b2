"""
Engine wiring: builds repositories and agents with explicit constructor
injection and exposes them as one SignalEngine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from agents.clusterer import ConversationClusterer
from agents.crisis_detector import CrisisDetector
from agents.crisis_manager import CrisisManager
from agents.trend_tracker import TrendTracker
from agents.viral_detector import ViralContentDetector
from db.database import init_db, make_engine, make_session_factory
from db.repositories import (
    SqlClusterRepository, SqlCrisisRepository, SqlMentionRepository, SqlTrendRepository,
)
from notifications.dispatcher import AlertDispatcher, HttpAlertDispatcher

logger = logging.getLogger(__name__)


@dataclass
class SignalEngine:
    mentions: SqlMentionRepository
    trends: SqlTrendRepository
    clusters: SqlClusterRepository
    crises: SqlCrisisRepository
    trend_tracker: TrendTracker
    viral_detector: ViralContentDetector
    clusterer: ConversationClusterer
    crisis_detector: CrisisDetector
    crisis_manager: CrisisManager


def build_engine(
    session_factory: Optional[sessionmaker] = None,
    dispatcher: Optional[AlertDispatcher] = None,
    clock=None,
    repository_timeout: Optional[float] = None,
    alert_timeout: Optional[float] = None,
) -> SignalEngine:
    """
    Wire a SignalEngine. Without a session factory the configured
    DATABASE_URL is used and its tables are created.
    """
    if session_factory is None:
        db_engine = make_engine()
        init_db(db_engine)
        session_factory = make_session_factory(db_engine)

    mentions = SqlMentionRepository(session_factory)
    trends = SqlTrendRepository(session_factory)
    clusters = SqlClusterRepository(session_factory)
    crises = SqlCrisisRepository(session_factory)
    common = {"clock": clock, "repository_timeout": repository_timeout}

    return SignalEngine(
        mentions=mentions,
        trends=trends,
        clusters=clusters,
        crises=crises,
        trend_tracker=TrendTracker(mentions, trends, **common),
        viral_detector=ViralContentDetector(mentions, **common),
        clusterer=ConversationClusterer(mentions, clusters, **common),
        crisis_detector=CrisisDetector(mentions, crises, **common),
        crisis_manager=CrisisManager(
            crises,
            dispatcher or HttpAlertDispatcher(),
            clock=clock,
            alert_timeout=alert_timeout,
        ),
    )
