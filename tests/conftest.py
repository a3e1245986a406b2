"""
Shared fixtures: in-memory database, fixed clock, mention factory.
Run with: python -m pytest tests/ -v
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta
from typing import List

import pytest

from db.database import init_db, make_engine, make_session_factory
from models.schemas import (
    AlertChannelResult, Crisis, CrisisSeverity, CrisisStatus, CrisisType, Mention, Sentiment,
)
from notifications.dispatcher import AlertDispatcher
from utils.engine import build_engine

NOW = datetime(2026, 3, 10, 12, 0, 0)
WORKSPACE = "ws-1"


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class MentionFactory:
    def __init__(self, now: datetime):
        self.now = now
        self.counter = 0

    def __call__(
        self,
        content: str = "talking about the product",
        minutes_ago: float = 10,
        workspace_id: str = WORKSPACE,
        **fields,
    ) -> Mention:
        self.counter += 1
        fields.setdefault("author_id", f"author-{self.counter}")
        fields.setdefault("author_username", f"user{self.counter}")
        fields.setdefault("platform", "twitter")
        return Mention(
            id=f"m{self.counter:05d}",
            workspace_id=workspace_id,
            content=content,
            published_at=self.now - timedelta(minutes=minutes_ago),
            **fields,
        )

    def many(self, n: int, content: str, start_minutes_ago: float, spread_minutes: float, **fields) -> List[Mention]:
        """`n` mentions spaced evenly, newest at `start_minutes_ago`."""
        step = spread_minutes / max(n, 1)
        return [self(content, start_minutes_ago + i * step, **fields) for i in range(n)]


class RecordingDispatcher(AlertDispatcher):
    def __init__(self, failing=(), raises: Exception = None):
        self.failing = set(failing)
        self.raises = raises
        self.calls = []

    def send(self, crisis, channels, recipients, message):
        self.calls.append({"crisis_id": crisis.id, "channels": list(channels),
                           "recipients": list(recipients), "message": message})
        if self.raises:
            raise self.raises
        return [
            AlertChannelResult(channel=c, success=c not in self.failing,
                               error="gateway rejected" if c in self.failing else None)
            for c in channels
        ]


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def session_factory():
    db_engine = make_engine("sqlite://", echo=False)
    init_db(db_engine)
    yield make_session_factory(db_engine)
    db_engine.dispose()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def engine(session_factory, dispatcher, clock):
    return build_engine(
        session_factory,
        dispatcher=dispatcher,
        clock=clock,
        repository_timeout=0,
        alert_timeout=0,
    )


@pytest.fixture
def mention(clock):
    return MentionFactory(clock.now)


@pytest.fixture
def seed(engine):
    def _seed(mentions):
        return engine.mentions.add_many(mentions)
    return _seed


@pytest.fixture
def make_crisis(engine, clock):
    """Persist a minimal DETECTED crisis, detected `minutes_ago` before the clock."""
    def _make(minutes_ago: float = 90, score: int = 75, severity=CrisisSeverity.HIGH,
              status=CrisisStatus.DETECTED, workspace_id: str = WORKSPACE) -> Crisis:
        crisis = Crisis(
            workspace_id=workspace_id,
            title=f"{severity.value.upper()}: Negative Trend - outage",
            description="Crisis detected with 20 mentions.",
            type=CrisisType.NEGATIVE_TREND,
            severity=severity,
            status=status,
            detected_at=clock.now - timedelta(minutes=minutes_ago),
            crisis_score=score,
            sentiment_score=-0.8,
            sentiment_change=-0.6,
            volume_change=50.0,
            baseline_sentiment=-0.2,
            baseline_volume=10,
            mention_volume=20,
        )
        crisis.add_timeline(crisis.detected_at, "crisis_detected", f"Crisis detected with score {score}")
        return engine.crises.create(crisis)
    return _make


NEGATIVE = {"sentiment": Sentiment.NEGATIVE, "sentiment_score": -0.9}
NEUTRAL = {"sentiment": Sentiment.NEUTRAL, "sentiment_score": 0.0}
POSITIVE = {"sentiment": Sentiment.POSITIVE, "sentiment_score": 0.8}
