"""
Crisis Anomaly Detector & Scorer
Compares the last `time_window` minutes against the equal-length window
before it, flags sentiment and volume anomalies, scores the situation
0-100, and opens a Crisis when an anomaly fired and the score is high
enough.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional
import math

import numpy as np

from agents.base import Agent
from agents.terms import extract_hashtags, top_words
from config.settings import settings
from db.repositories import CrisisRepository, MentionRepository
from models.schemas import (
    AnomalyResult, Crisis, CrisisConfig, CrisisDetectionResult, CrisisMetrics,
    CrisisSeverity, CrisisStatus, CrisisType, CRISIS_TYPE_LABELS,
    Mention, Sentiment, SENTIMENT_VALUES, TimeRange, WorkspaceJob,
)


def average_sentiment(mentions: List[Mention]) -> float:
    """Mean of the categorical sentiment (+1/0/-1); unlabeled mentions count as 0."""
    if not mentions:
        return 0.0
    return float(np.mean([SENTIMENT_VALUES.get(m.sentiment, 0.0) for m in mentions]))


def negative_percentage(mentions: List[Mention]) -> float:
    if not mentions:
        return 0.0
    negative = sum(1 for m in mentions if m.sentiment == Sentiment.NEGATIVE)
    return negative / len(mentions) * 100


def volume_change(current: int, baseline: int) -> float:
    if baseline > 0:
        return (current - baseline) / baseline * 100
    return current * 100.0


def sentiment_severity(current: float, change: float) -> CrisisSeverity:
    if current < -0.7 or change < -0.5:
        return CrisisSeverity.CRITICAL
    if current < -0.5 or change < -0.3:
        return CrisisSeverity.HIGH
    if current < -0.3 or change < -0.2:
        return CrisisSeverity.MEDIUM
    return CrisisSeverity.LOW


def volume_severity(change: float) -> CrisisSeverity:
    if change >= 500:
        return CrisisSeverity.CRITICAL
    if change >= 300:
        return CrisisSeverity.HIGH
    if change >= 200:
        return CrisisSeverity.MEDIUM
    return CrisisSeverity.LOW


def detect_sentiment_anomaly(current: float, baseline: float, threshold: float) -> AnomalyResult:
    change = current - baseline
    return AnomalyResult(
        is_anomaly=current < threshold and change < -0.2,
        kind="sentiment",
        severity=sentiment_severity(current, change),
        score=abs(change) * 100,
        current_value=current,
        baseline=baseline,
        change=change,
        threshold=threshold,
    )


def detect_volume_anomaly(current: int, baseline: int, threshold: float) -> AnomalyResult:
    change = volume_change(current, baseline)
    return AnomalyResult(
        is_anomaly=change >= threshold,
        kind="volume",
        severity=volume_severity(change),
        score=min(change / 5, 100),
        current_value=float(current),
        baseline=float(baseline),
        change=change,
        threshold=threshold,
    )


def crisis_score(
    sentiment_score: float,
    sentiment_change: float,
    volume_change_pct: float,
    negative_pct: float,
    influencer_count: int,
    total_mentions: int,
) -> int:
    raw = (
        30 * abs(min(sentiment_score, 0))
        + 20 * abs(min(sentiment_change, 0))
        + 20 * min(max(volume_change_pct, 0) / 500, 1)
        + 15 * (negative_pct / 100)
        + 10 * min(influencer_count / 5, 1)
        + 5 * min(total_mentions / 100, 1)
    )
    # round half up, then bound to [0, 100]
    return int(min(max(math.floor(raw + 0.5), 0), 100))


def crisis_type(sentiment: AnomalyResult, volume: AnomalyResult) -> CrisisType:
    if sentiment.is_anomaly and volume.is_anomaly:
        return CrisisType.SENTIMENT_SPIKE
    if sentiment.is_anomaly:
        return CrisisType.NEGATIVE_TREND
    return CrisisType.VOLUME_ANOMALY


def aggregate_influencers(mentions: List[Mention]) -> List[Dict]:
    """Influencer mentions grouped by username, most-followed first."""
    by_user: Dict[str, Dict] = {}
    for m in mentions:
        if not m.is_influencer:
            continue
        entry = by_user.get(m.author_username)
        if entry:
            entry["mention_count"] += 1
        else:
            by_user[m.author_username] = {
                "username": m.author_username,
                "followers": m.author_followers or 0,
                "mention_count": 1,
                "sentiment": m.sentiment.value if m.sentiment else None,
            }
    return sorted(by_user.values(), key=lambda i: -i["followers"])


class CrisisDetector(Agent):
    """
    Input:  WorkspaceJob(options=CrisisConfig)
    Output: CrisisDetectionResult
    """

    job_kind = "crisis"

    def __init__(
        self,
        mentions: MentionRepository,
        crises: CrisisRepository,
        clock=None,
        repository_timeout: Optional[float] = None,
        score_threshold: int = None,
    ):
        super().__init__("CrisisDetector", mentions, clock=clock, repository_timeout=repository_timeout)
        self.crises = crises
        self.score_threshold = settings.CRISIS_SCORE_THRESHOLD if score_threshold is None else score_threshold

    def run(self, job: WorkspaceJob) -> CrisisDetectionResult:
        return self.monitor_for_crisis(job.workspace_id, job.options)

    def monitor_for_crisis(self, workspace_id: str, config: Optional[CrisisConfig] = None) -> CrisisDetectionResult:
        config = config or CrisisConfig(
            sentiment_threshold=settings.CRISIS_SENTIMENT_THRESHOLD,
            volume_threshold=settings.CRISIS_VOLUME_THRESHOLD,
            time_window=settings.CRISIS_TIME_WINDOW_MINUTES,
            min_mentions=settings.CRISIS_MIN_MENTIONS,
        )
        now = self.clock()
        window = timedelta(minutes=config.time_window)

        current = self.fetch_mentions(workspace_id, TimeRange(now - window, now), config.platforms)
        if len(current) < config.min_mentions:
            self.logger.debug(
                f"{workspace_id}: {len(current)} mentions < {config.min_mentions}, skipping crisis check"
            )
            return CrisisDetectionResult(crisis_detected=False, metrics=CrisisMetrics(), insufficient_data=True)

        baseline = self.fetch_mentions(workspace_id, TimeRange(now - 2 * window, now - window), config.platforms)

        current_sentiment = average_sentiment(current)
        baseline_sentiment = average_sentiment(baseline)
        sentiment = detect_sentiment_anomaly(current_sentiment, baseline_sentiment, config.sentiment_threshold)
        volume = detect_volume_anomaly(len(current), len(baseline), config.volume_threshold)

        metrics = CrisisMetrics(
            sentiment_score=current_sentiment,
            sentiment_change=sentiment.change,
            volume_change=volume.change,
            crisis_score=crisis_score(
                current_sentiment,
                sentiment.change,
                volume.change,
                negative_percentage(current),
                sum(1 for m in current if m.is_influencer),
                len(current),
            ),
        )

        if not (sentiment.is_anomaly or volume.is_anomaly) or metrics.crisis_score < self.score_threshold:
            return CrisisDetectionResult(crisis_detected=False, metrics=metrics)

        crisis = self.crises.create(
            self.build_crisis(workspace_id, now, current, baseline, sentiment, volume, metrics, config)
        )
        self.logger.warning(
            f"🚨 Crisis detected in {workspace_id}: {crisis.title} (score {crisis.crisis_score})"
        )
        return CrisisDetectionResult(crisis_detected=True, crisis=crisis, metrics=metrics)

    @staticmethod
    def build_crisis(
        workspace_id: str,
        now: datetime,
        current: List[Mention],
        baseline: List[Mention],
        sentiment: AnomalyResult,
        volume: AnomalyResult,
        metrics: CrisisMetrics,
        config: CrisisConfig,
    ) -> Crisis:
        kind = crisis_type(sentiment, volume)
        severity = CrisisSeverity.from_level(max(sentiment.severity.level, volume.severity.level))

        contents = [m.content for m in current]
        keywords = top_words(contents, 20)
        hashtags = list(dict.fromkeys(h for text in contents for h in extract_hashtags(text)))

        influencers = [m for m in current if m.is_influencer]
        negatives = sorted(
            (m for m in current if m.sentiment == Sentiment.NEGATIVE),
            key=lambda m: -m.engagement,
        )

        title = f"{severity.value.upper()}: {CRISIS_TYPE_LABELS[kind]}"
        if keywords:
            title += f" - {', '.join(keywords[:3])}"

        crisis = Crisis(
            workspace_id=workspace_id,
            title=title,
            description=(
                f"Crisis detected with {len(current)} mentions. "
                f"Sentiment score: {metrics.sentiment_score:.2f}, "
                f"Change: {metrics.sentiment_change:.2f}, "
                f"Volume change: {metrics.volume_change:.0f}%"
            ),
            type=kind,
            severity=severity,
            status=CrisisStatus.DETECTED,
            detected_at=now,
            crisis_score=metrics.crisis_score,
            sentiment_score=metrics.sentiment_score,
            sentiment_change=metrics.sentiment_change,
            volume_change=metrics.volume_change,
            baseline_sentiment=sentiment.baseline,
            baseline_volume=len(baseline),
            negative_mention_count=sum(1 for m in current if m.sentiment == Sentiment.NEGATIVE),
            negative_mention_percentage=negative_percentage(current),
            mention_volume=len(current),
            peak_volume=len(current),
            platforms=sorted({m.platform for m in current}),
            keywords=keywords,
            hashtags=hashtags,
            influencer_count=len(influencers),
            top_influencers=aggregate_influencers(current)[:10],
            mention_ids=[m.id for m in current],
            sample_mentions=[m.content for m in negatives[:5]],
            estimated_reach=sum(m.reach for m in current),
            total_engagement=sum(m.engagement for m in current),
            detection_config={
                **config.to_dict(),
                "anomalies": {
                    a.kind: {
                        "is_anomaly": a.is_anomaly,
                        "severity": a.severity.value,
                        "score": round(a.score, 4),
                        "details": {
                            "current_value": a.current_value,
                            "baseline": a.baseline,
                            "change": a.change,
                            "threshold": a.threshold,
                        },
                    }
                    for a in (sentiment, volume)
                },
            },
        )
        crisis.add_timeline(now, "crisis_detected", f"Crisis detected with score {metrics.crisis_score}")
        return crisis
