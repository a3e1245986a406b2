"""
Trend Tracker Agent
Aggregates term frequencies into a current and a baseline window, scores
growth, momentum and virality per term, and upserts one Trend per
(workspace, term).
"""

from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import numpy as np

from agents.base import Agent
from agents.terms import extract_terms
from config.settings import settings
from db.repositories import MentionRepository, TrendRepository
from models.schemas import (
    Mention, Sentiment, TimeRange, Trend, TrendFilter, TrendSummary,
    TrendDetectionResult, TrendStatus, TrendType, WorkspaceJob,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def growth_rate(current: int, previous: int) -> float:
    """Percent change; with an empty baseline every mention counts as 100%."""
    if previous > 0:
        return (current - previous) / previous * 100
    return current * 100.0


def growth_velocity(current: int, previous: int) -> float:
    if previous > 0:
        return (current - previous) / previous
    return 1.0 if current > 0 else 0.0


def determine_trend_status(rate: float, momentum: float) -> TrendStatus:
    # first match wins
    if rate > 500 or momentum > 90:
        return TrendStatus.VIRAL
    if rate > 200 or momentum > 70:
        return TrendStatus.EMERGING
    if rate > 50 or momentum > 40:
        return TrendStatus.RISING
    if rate < -20:
        return TrendStatus.DECLINING
    return TrendStatus.STABLE


def term_virality(average_engagement: float, total_reach: int, volume: int) -> float:
    return (
        40 * _clamp(average_engagement / 100, 0, 1)
        + 30 * _clamp(total_reach / 100_000, 0, 1)
        + 30 * _clamp(volume / 100, 0, 1)
    )


def daily_velocity(mentions: List[Mention]) -> float:
    """Mean day-over-day relative change across UTC daily buckets."""
    buckets: Dict = OrderedDict()
    for m in sorted(mentions, key=lambda m: m.published_at):
        day = m.published_at.date()
        buckets[day] = buckets.get(day, 0) + 1
    volumes = list(buckets.values())
    if len(volumes) < 2:
        return 0.0
    changes = [
        (cur - prev) / prev if prev > 0 else float(cur - prev)
        for prev, cur in zip(volumes, volumes[1:])
    ]
    return float(np.mean(changes))


def average_sentiment_score(mentions: List[Mention]) -> float:
    """Mean sentiment_score over scored mentions only; 0.0 when none are scored."""
    scores = [m.sentiment_score for m in mentions if m.sentiment_score is not None]
    return float(np.mean(scores)) if scores else 0.0


def engagement_metrics(mentions: List[Mention]) -> dict:
    """Engagement, reach, sentiment and influencer aggregates for a mention set."""
    total_engagement = sum(m.engagement for m in mentions)
    n = len(mentions)
    breakdown = Counter(m.sentiment for m in mentions if m.sentiment is not None)
    influencers = [m for m in mentions if m.is_influencer]
    top_influencers = list(dict.fromkeys(m.author_username for m in influencers if m.author_username))
    return {
        "total_engagement": total_engagement,
        "average_engagement": total_engagement / n if n else 0.0,
        "reach": sum(m.reach for m in mentions),
        "sentiment_score": average_sentiment_score(mentions),
        "sentiment_breakdown": {
            "positive": breakdown.get(Sentiment.POSITIVE, 0),
            "neutral": breakdown.get(Sentiment.NEUTRAL, 0),
            "negative": breakdown.get(Sentiment.NEGATIVE, 0),
        },
        "influencer_count": len(influencers),
        "top_influencers": top_influencers[:10],
        "platforms": sorted({m.platform for m in mentions}),
    }


class TrendTracker(Agent):
    """
    Input:  WorkspaceJob(options={"platforms": [...]})
    Output: TrendDetectionResult
    """

    job_kind = "trends"

    def __init__(
        self,
        mentions: MentionRepository,
        trends: TrendRepository,
        clock=None,
        repository_timeout: Optional[float] = None,
        window_hours: int = None,
        min_volume: int = None,
    ):
        super().__init__("TrendTracker", mentions, clock=clock, repository_timeout=repository_timeout)
        self.trends = trends
        self.window = timedelta(hours=window_hours or settings.TREND_WINDOW_HOURS)
        self.min_volume = settings.MIN_TREND_VOLUME if min_volume is None else min_volume

    def run(self, job: WorkspaceJob) -> TrendDetectionResult:
        options = job.options or {}
        return self.detect_trends(job.workspace_id, platforms=options.get("platforms"))

    # ── Detection ───────────────────────────────────────────────────────────

    def detect_trends(self, workspace_id: str, platforms: Optional[List[str]] = None) -> TrendDetectionResult:
        now = self.clock()
        current = self.fetch_mentions(workspace_id, TimeRange(now - self.window, now), platforms)
        previous = self.fetch_mentions(
            workspace_id, TimeRange(now - 2 * self.window, now - self.window), platforms
        )

        current_counts = extract_terms(m.content for m in current)
        previous_counts = extract_terms(m.content for m in previous)
        lowered = [(m, m.content.lower()) for m in current]

        trends: List[Trend] = []
        for term, count in sorted(current_counts.items()):
            if count < self.min_volume:
                continue
            prev = previous_counts.get(term, 0)
            rate = growth_rate(count, prev)
            momentum = _clamp(rate, 0, 100)
            metrics = engagement_metrics([m for m, text in lowered if term in text])

            trend = Trend(
                workspace_id=workspace_id,
                term=term,
                type=TrendType.HASHTAG if term.startswith("#") else TrendType.KEYWORD,
                status=determine_trend_status(rate, momentum),
                first_seen_at=now,
                last_seen_at=now,
                current_volume=count,
                previous_volume=prev,
                peak_volume=count,
                growth_rate=rate,
                growth_velocity=rate / 100,
                momentum=momentum,
                virality_score=term_virality(metrics["average_engagement"], metrics["reach"], count),
                **metrics,
            )
            trends.append(self.trends.upsert(trend))

        trends.sort(key=lambda t: (-t.virality_score, t.term))
        summary = TrendSummary(
            total=len(trends),
            emerging=sum(1 for t in trends if t.status == TrendStatus.EMERGING),
            rising=sum(1 for t in trends if t.status == TrendStatus.RISING),
            viral=sum(1 for t in trends if t.status == TrendStatus.VIRAL),
            declining=sum(1 for t in trends if t.status == TrendStatus.DECLINING),
        )
        self.logger.info(
            f"📈 {workspace_id}: {summary.total} trends "
            f"({summary.viral} viral, {summary.emerging} emerging, {summary.rising} rising) "
            f"from {len(current)} mentions"
        )
        return TrendDetectionResult(trends=trends, summary=summary)

    def track_hashtag_trend(self, workspace_id: str, hashtag: str, days: int = None) -> Optional[Trend]:
        """Score one hashtag over the last `days` days; None when nothing matches."""
        days = days or settings.HASHTAG_TRACK_DAYS
        clean = hashtag.strip().lstrip("#").lower()
        if not clean:
            return None
        term = f"#{clean}"
        now = self.clock()
        mentions = self.fetch_mentions(
            workspace_id, TimeRange(now - timedelta(days=days), now),
            contains=term, newest_first=False,
        )
        if not mentions:
            return None

        velocity = daily_velocity(mentions)
        metrics = engagement_metrics(mentions)
        volume = len(mentions)
        trend = Trend(
            workspace_id=workspace_id,
            term=term,
            type=TrendType.HASHTAG,
            status=determine_trend_status(velocity * 100, 0),
            first_seen_at=min(m.published_at for m in mentions),
            last_seen_at=now,
            current_volume=volume,
            peak_volume=volume,
            growth_rate=velocity * 100,
            growth_velocity=velocity,
            virality_score=term_virality(metrics["average_engagement"], metrics["reach"], volume),
            **metrics,
        )
        return self.trends.upsert(trend)

    def calculate_growth_velocity(self, workspace_id: str, term: str, window_hours: int = None) -> float:
        window = timedelta(hours=window_hours or settings.TREND_WINDOW_HOURS)
        now = self.clock()
        current = self.fetch_mentions(workspace_id, TimeRange(now - window, now), contains=term)
        previous = self.fetch_mentions(workspace_id, TimeRange(now - 2 * window, now - window), contains=term)
        return growth_velocity(len(current), len(previous))

    # ── Listing & retention ─────────────────────────────────────────────────

    def get_trends(
        self,
        filters: TrendFilter,
        sort_by: str = "virality_score",
        descending: bool = True,
        limit: int = None,
        offset: int = 0,
    ) -> Tuple[List[Trend], int]:
        return self.trends.find(
            filters,
            sort_by=sort_by,
            descending=descending,
            limit=limit or settings.TRENDS_PAGE_LIMIT,
            offset=offset,
        )

    def cleanup_stale_trends(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or self.clock()
        deactivated = self.trends.deactivate_stale(
            before=now - timedelta(days=settings.TREND_STALE_DAYS),
            expires_at=now + timedelta(days=settings.TREND_RETENTION_DAYS),
        )
        deleted = self.trends.delete_expired(now)
        self.logger.info(f"🧹 Trend cleanup: {deactivated} deactivated, {deleted} deleted")
        return {"deactivated": deactivated, "deleted": deleted}
