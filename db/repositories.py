"""
Repository interfaces consumed by the agents, plus SQLAlchemy implementations.

Agents only see the abstract classes; the engine wires in the SQL versions
(or anything else honouring the same contract).
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Iterable, List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.database import get_db
from db.models import MentionRow, TrendRow, ClusterRow, CrisisRow
from models.errors import InvalidConfig, RepositoryFailure
from models.schemas import (
    Mention, Sentiment, TimeRange,
    Trend, TrendFilter, TrendType, TrendStatus,
    ConversationCluster,
    Crisis, CrisisFilter, CrisisType, CrisisSeverity, CrisisStatus,
    TimelineEntry, CrisisResponse, AlertRecord, PostMortem,
)

logger = logging.getLogger(__name__)

TREND_SORT_FIELDS = {
    "virality_score", "growth_rate", "growth_velocity", "momentum",
    "current_volume", "peak_volume", "total_engagement",
    "first_seen_at", "last_seen_at", "term",
}


# ─── Interfaces ──────────────────────────────────────────────────────────────

class MentionRepository(ABC):
    @abstractmethod
    def query(
        self,
        workspace_id: str,
        time_range: TimeRange,
        platforms: Optional[List[str]] = None,
        contains: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[Mention]:
        """Mentions for one workspace published inside `time_range`."""

    @abstractmethod
    def list_workspace_ids(self) -> List[str]:
        ...


class TrendRepository(ABC):
    @abstractmethod
    def upsert(self, trend: Trend) -> Trend:
        """
        Insert or update the trend keyed by (workspace_id, term).
        peak_volume becomes max(stored, incoming) and first_seen_at is only
        written on insert.
        """

    @abstractmethod
    def find(
        self,
        filters: TrendFilter,
        sort_by: str = "virality_score",
        descending: bool = True,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Trend], int]:
        ...

    @abstractmethod
    def get(self, workspace_id: str, term: str) -> Optional[Trend]:
        ...

    @abstractmethod
    def deactivate_stale(self, before: datetime, expires_at: datetime) -> int:
        """Mark active trends last seen before `before` inactive."""

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        ...


class ClusterRepository(ABC):
    @abstractmethod
    def create(self, cluster: ConversationCluster) -> ConversationCluster:
        ...

    @abstractmethod
    def find(self, workspace_id: str, limit: int = 50) -> List[ConversationCluster]:
        ...


class CrisisRepository(ABC):
    @abstractmethod
    def create(self, crisis: Crisis) -> Crisis:
        ...

    @abstractmethod
    def update(self, crisis: Crisis) -> Crisis:
        ...

    @abstractmethod
    def find_by_id(self, crisis_id: str) -> Optional[Crisis]:
        ...

    @abstractmethod
    def find(
        self,
        filters: CrisisFilter,
        order: str = "recent",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Crisis]:
        """`order` is "recent" (detected_at desc) or "score" (score desc, then recent)."""

    @abstractmethod
    def count(self, filters: CrisisFilter) -> int:
        ...


# ─── SQLAlchemy implementations ──────────────────────────────────────────────

class _SqlRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        try:
            with get_db(self.session_factory) as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Repository error in {type(self).__name__}: {e}")
            raise RepositoryFailure(f"{type(self).__name__}: {e}") from e


def _mention_from_row(row: MentionRow) -> Mention:
    return Mention(
        id=row.mention_id,
        workspace_id=row.workspace_id,
        platform=row.platform,
        content=row.content or "",
        published_at=row.published_at,
        author_id=row.author_id or "",
        author_username=row.author_username or "",
        author_followers=row.author_followers or 0,
        is_influencer=bool(row.is_influencer),
        likes=row.likes or 0,
        comments=row.comments or 0,
        shares=row.shares or 0,
        reach=row.reach or 0,
        sentiment=Sentiment(row.sentiment) if row.sentiment else None,
        sentiment_score=row.sentiment_score,
        tags=frozenset(row.tags or []),
    )


class SqlMentionRepository(_SqlRepository, MentionRepository):

    def query(self, workspace_id, time_range, platforms=None, contains=None, newest_first=True):
        with self._session() as db:
            q = db.query(MentionRow).filter(
                MentionRow.workspace_id == workspace_id,
                MentionRow.published_at >= time_range.start,
            )
            if time_range.end is not None:
                q = q.filter(MentionRow.published_at < time_range.end)
            if platforms:
                q = q.filter(MentionRow.platform.in_(platforms))
            if contains:
                q = q.filter(
                    func.lower(MentionRow.content).contains(contains.lower(), autoescape=True)
                )
            if newest_first:
                q = q.order_by(MentionRow.published_at.desc(), MentionRow.mention_id.desc())
            else:
                q = q.order_by(MentionRow.published_at.asc(), MentionRow.mention_id.asc())
            return [_mention_from_row(r) for r in q.all()]

    def list_workspace_ids(self):
        with self._session() as db:
            rows = db.query(MentionRow.workspace_id).distinct().order_by(MentionRow.workspace_id).all()
            return [r[0] for r in rows]

    def add_many(self, mentions: Iterable[Mention]) -> int:
        """Collector-side bulk insert, used to seed demo and test data."""
        count = 0
        with self._session() as db:
            for m in mentions:
                db.add(MentionRow(
                    mention_id=m.id,
                    workspace_id=m.workspace_id,
                    platform=m.platform,
                    content=m.content,
                    author_id=m.author_id,
                    author_username=m.author_username,
                    author_followers=m.author_followers,
                    is_influencer=m.is_influencer,
                    likes=m.likes,
                    comments=m.comments,
                    shares=m.shares,
                    reach=m.reach,
                    sentiment=m.sentiment.value if m.sentiment else None,
                    sentiment_score=m.sentiment_score,
                    tags=sorted(m.tags),
                    published_at=m.published_at,
                ))
                count += 1
        return count


# ─── Trends ──────────────────────────────────────────────────────────────────

_TREND_FIELDS = (
    "type", "status", "platforms", "current_volume", "previous_volume",
    "growth_rate", "growth_velocity", "momentum", "virality_score",
    "total_engagement", "average_engagement", "reach", "sentiment_score",
    "sentiment_breakdown", "influencer_count", "top_influencers",
    "last_seen_at", "is_active", "expires_at",
)


def _trend_from_row(row: TrendRow) -> Trend:
    return Trend(
        id=row.trend_id,
        workspace_id=row.workspace_id,
        term=row.term,
        type=TrendType(row.type),
        status=TrendStatus(row.status),
        first_seen_at=row.first_seen_at,
        last_seen_at=row.last_seen_at,
        platforms=list(row.platforms or []),
        current_volume=row.current_volume or 0,
        previous_volume=row.previous_volume or 0,
        peak_volume=row.peak_volume or 0,
        growth_rate=row.growth_rate or 0.0,
        growth_velocity=row.growth_velocity or 0.0,
        momentum=row.momentum or 0.0,
        virality_score=row.virality_score or 0.0,
        total_engagement=row.total_engagement or 0,
        average_engagement=row.average_engagement or 0.0,
        reach=row.reach or 0,
        sentiment_score=row.sentiment_score or 0.0,
        sentiment_breakdown=dict(row.sentiment_breakdown or {}),
        influencer_count=row.influencer_count or 0,
        top_influencers=list(row.top_influencers or []),
        is_active=bool(row.is_active),
        expires_at=row.expires_at,
    )


def _trend_values(trend: Trend) -> dict:
    values = {name: getattr(trend, name) for name in _TREND_FIELDS}
    values["type"] = trend.type.value
    values["status"] = trend.status.value
    values["platforms"] = list(trend.platforms)
    values["sentiment_breakdown"] = dict(trend.sentiment_breakdown)
    values["top_influencers"] = list(trend.top_influencers)
    return values


class SqlTrendRepository(_SqlRepository, TrendRepository):

    def upsert(self, trend):
        with self._session() as db:
            row = (
                db.query(TrendRow)
                .filter(TrendRow.workspace_id == trend.workspace_id, TrendRow.term == trend.term)
                .with_for_update()
                .one_or_none()
            )
            incoming_peak = max(trend.peak_volume, trend.current_volume)
            if row is None:
                row = TrendRow(
                    workspace_id=trend.workspace_id,
                    term=trend.term,
                    first_seen_at=trend.first_seen_at,
                    peak_volume=incoming_peak,
                    **_trend_values(trend),
                )
                db.add(row)
            else:
                for name, value in _trend_values(trend).items():
                    setattr(row, name, value)
                row.peak_volume = max(row.peak_volume or 0, incoming_peak)
            db.flush()
            return _trend_from_row(row)

    def find(self, filters, sort_by="virality_score", descending=True, limit=50, offset=0):
        if sort_by not in TREND_SORT_FIELDS:
            raise InvalidConfig(f"Unsupported sort field: {sort_by}", "sort_by")

        with self._session() as db:
            q = db.query(TrendRow).filter(
                TrendRow.workspace_id == filters.workspace_id,
                TrendRow.is_active.is_(True),
            )
            if filters.type is not None:
                q = q.filter(TrendRow.type == filters.type.value)
            if filters.status is not None:
                q = q.filter(TrendRow.status == filters.status.value)
            if filters.min_growth_rate is not None:
                q = q.filter(TrendRow.growth_rate >= filters.min_growth_rate)
            if filters.min_virality_score is not None:
                q = q.filter(TrendRow.virality_score >= filters.min_virality_score)

            column = getattr(TrendRow, sort_by)
            q = q.order_by(column.desc() if descending else column.asc(), TrendRow.term.asc())

            if filters.platforms:
                # platforms live in a JSON column; overlap is checked in Python
                wanted = set(filters.platforms)
                rows = [r for r in q.all() if wanted.intersection(r.platforms or [])]
                page = rows[offset:offset + limit]
                return [_trend_from_row(r) for r in page], len(rows)

            total = q.count()
            rows = q.offset(offset).limit(limit).all()
            return [_trend_from_row(r) for r in rows], total

    def get(self, workspace_id, term):
        with self._session() as db:
            row = (
                db.query(TrendRow)
                .filter(TrendRow.workspace_id == workspace_id, TrendRow.term == term)
                .one_or_none()
            )
            return _trend_from_row(row) if row else None

    def deactivate_stale(self, before, expires_at):
        with self._session() as db:
            return (
                db.query(TrendRow)
                .filter(TrendRow.is_active.is_(True), TrendRow.last_seen_at < before)
                .update(
                    {TrendRow.is_active: False, TrendRow.expires_at: expires_at},
                    synchronize_session=False,
                )
            )

    def delete_expired(self, now):
        with self._session() as db:
            return (
                db.query(TrendRow)
                .filter(TrendRow.expires_at.isnot(None), TrendRow.expires_at < now)
                .delete(synchronize_session=False)
            )


# ─── Clusters ────────────────────────────────────────────────────────────────

def _cluster_from_row(row: ClusterRow) -> ConversationCluster:
    return ConversationCluster(
        id=row.cluster_id,
        workspace_id=row.workspace_id,
        name=row.name or "",
        description=row.description or "",
        keywords=list(row.keywords or []),
        hashtags=list(row.hashtags or []),
        mention_ids=list(row.mention_ids or []),
        size=row.size or 0,
        cohesion_score=row.cohesion_score or 0.0,
        diversity_score=row.diversity_score or 0.0,
        start_date=row.start_date,
        end_date=row.end_date,
        peak_date=row.peak_date,
        peak_volume=row.peak_volume or 0,
        total_engagement=row.total_engagement or 0,
        average_engagement=row.average_engagement or 0.0,
        total_reach=row.total_reach or 0,
        average_sentiment=row.average_sentiment or 0.0,
        sentiment_distribution=dict(row.sentiment_distribution or {}),
        platform_distribution=dict(row.platform_distribution or {}),
        top_contributors=list(row.top_contributors or []),
        topics=list(row.topics or []),
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )


class SqlClusterRepository(_SqlRepository, ClusterRepository):

    def create(self, cluster):
        with self._session() as db:
            row = ClusterRow(
                workspace_id=cluster.workspace_id,
                name=cluster.name,
                description=cluster.description,
                keywords=list(cluster.keywords),
                hashtags=list(cluster.hashtags),
                mention_ids=list(cluster.mention_ids),
                size=cluster.size,
                cohesion_score=cluster.cohesion_score,
                diversity_score=cluster.diversity_score,
                start_date=cluster.start_date,
                end_date=cluster.end_date,
                peak_date=cluster.peak_date,
                peak_volume=cluster.peak_volume,
                total_engagement=cluster.total_engagement,
                average_engagement=cluster.average_engagement,
                total_reach=cluster.total_reach,
                average_sentiment=cluster.average_sentiment,
                sentiment_distribution=dict(cluster.sentiment_distribution),
                platform_distribution=dict(cluster.platform_distribution),
                top_contributors=list(cluster.top_contributors),
                topics=list(cluster.topics),
                is_active=cluster.is_active,
                created_at=cluster.created_at,
            )
            db.add(row)
            db.flush()
            return _cluster_from_row(row)

    def find(self, workspace_id, limit=50):
        with self._session() as db:
            rows = (
                db.query(ClusterRow)
                .filter(ClusterRow.workspace_id == workspace_id)
                .order_by(ClusterRow.created_at.desc(), ClusterRow.size.desc())
                .limit(limit)
                .all()
            )
            return [_cluster_from_row(r) for r in rows]


# ─── Crises ──────────────────────────────────────────────────────────────────

_CRISIS_SCALARS = (
    "workspace_id", "title", "description", "crisis_score",
    "sentiment_score", "sentiment_change", "volume_change",
    "baseline_sentiment", "baseline_volume",
    "negative_mention_count", "negative_mention_percentage",
    "mention_volume", "peak_volume", "influencer_count",
    "alerts_sent", "estimated_reach", "total_engagement", "is_active",
    "detected_at", "acknowledged_at", "resolved_at",
)
_CRISIS_LISTS = (
    "platforms", "keywords", "hashtags", "top_influencers", "mention_ids",
    "sample_mentions", "assigned_to", "team_members",
)


def _crisis_values(crisis: Crisis) -> dict:
    values = {name: getattr(crisis, name) for name in _CRISIS_SCALARS}
    values.update({name: list(getattr(crisis, name)) for name in _CRISIS_LISTS})
    values.update(
        type=crisis.type.value,
        severity=crisis.severity.value,
        status=crisis.status.value,
        responses=[r.to_dict() for r in crisis.responses],
        alerts=[a.to_dict() for a in crisis.alerts],
        timeline=[t.to_dict() for t in crisis.timeline],
        detection_config=dict(crisis.detection_config),
        post_mortem=crisis.post_mortem.to_dict() if crisis.post_mortem else None,
    )
    return values


def _crisis_from_row(row: CrisisRow) -> Crisis:
    crisis = Crisis(
        id=row.crisis_id,
        workspace_id=row.workspace_id,
        title=row.title,
        description=row.description or "",
        type=CrisisType(row.type),
        severity=CrisisSeverity(row.severity),
        status=CrisisStatus(row.status),
        detected_at=row.detected_at,
        crisis_score=row.crisis_score or 0,
        sentiment_score=row.sentiment_score or 0.0,
        sentiment_change=row.sentiment_change or 0.0,
        volume_change=row.volume_change or 0.0,
        baseline_sentiment=row.baseline_sentiment or 0.0,
        baseline_volume=row.baseline_volume or 0,
    )
    for name in _CRISIS_SCALARS:
        value = getattr(row, name)
        if value is not None:
            setattr(crisis, name, value)
    for name in _CRISIS_LISTS:
        setattr(crisis, name, list(getattr(row, name) or []))
    crisis.responses = [CrisisResponse.from_dict(r) for r in row.responses or []]
    crisis.alerts = [AlertRecord.from_dict(a) for a in row.alerts or []]
    crisis.timeline = [TimelineEntry.from_dict(t) for t in row.timeline or []]
    crisis.detection_config = dict(row.detection_config or {})
    crisis.post_mortem = PostMortem.from_dict(row.post_mortem) if row.post_mortem else None
    return crisis


class SqlCrisisRepository(_SqlRepository, CrisisRepository):

    def create(self, crisis):
        with self._session() as db:
            row = CrisisRow(**_crisis_values(crisis))
            db.add(row)
            db.flush()
            return _crisis_from_row(row)

    def update(self, crisis):
        with self._session() as db:
            row = db.get(CrisisRow, crisis.id)
            if row is None:
                raise RepositoryFailure(f"Crisis row vanished during update: {crisis.id}")
            for name, value in _crisis_values(crisis).items():
                setattr(row, name, value)
            db.flush()
            return _crisis_from_row(row)

    def find_by_id(self, crisis_id):
        with self._session() as db:
            row = db.get(CrisisRow, crisis_id)
            return _crisis_from_row(row) if row else None

    def _filtered(self, db: Session, filters: CrisisFilter):
        q = db.query(CrisisRow).filter(CrisisRow.workspace_id == filters.workspace_id)
        if filters.statuses:
            q = q.filter(CrisisRow.status.in_([s.value for s in filters.statuses]))
        if filters.severities:
            q = q.filter(CrisisRow.severity.in_([s.value for s in filters.severities]))
        if filters.start_date is not None:
            q = q.filter(CrisisRow.detected_at >= filters.start_date)
        if filters.end_date is not None:
            q = q.filter(CrisisRow.detected_at <= filters.end_date)
        if filters.has_post_mortem is True:
            q = q.filter(CrisisRow.post_mortem.isnot(None))
        elif filters.has_post_mortem is False:
            q = q.filter(CrisisRow.post_mortem.is_(None))
        return q

    def find(self, filters, order="recent", limit=None, offset=0):
        with self._session() as db:
            q = self._filtered(db, filters)
            if order == "score":
                q = q.order_by(CrisisRow.crisis_score.desc(), CrisisRow.detected_at.desc())
            else:
                q = q.order_by(CrisisRow.detected_at.desc(), CrisisRow.crisis_id.asc())
            if offset:
                q = q.offset(offset)
            if limit is not None:
                q = q.limit(limit)
            return [_crisis_from_row(r) for r in q.all()]

    def count(self, filters):
        with self._session() as db:
            return self._filtered(db, filters).count()
