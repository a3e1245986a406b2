"""
Viral Content Detector
Scores individual mentions by engagement velocity, reach, influencer weight
and freshness. Read-time ranking only; nothing is persisted.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from agents.base import Agent
from config.settings import settings
from db.repositories import MentionRepository
from models.schemas import Mention, TimeRange, ViralContent, ViralOptions, WorkspaceJob

# floor for elapsed time so a just-published mention does not divide by zero
MIN_ELAPSED_HOURS = 1 / 3600


def mention_virality(mention: Mention, now: datetime, window_hours: float) -> tuple:
    """Returns (virality_score, engagement_velocity, hours_elapsed)."""
    hours = max((now - mention.published_at).total_seconds() / 3600, MIN_ELAPSED_HOURS)
    velocity = mention.engagement / hours
    score = (
        40 * min(velocity / 100, 1)
        + 30 * min(mention.reach / 100_000, 1)
        + 20 * (1 if mention.is_influencer else 0.5)
        + 10 * max(0.0, 1 - hours / window_hours)
    )
    return min(max(score, 0.0), 100.0), velocity, hours


class ViralContentDetector(Agent):
    """
    Input:  WorkspaceJob(options=ViralOptions)
    Output: List[ViralContent], highest score first
    """

    job_kind = "viral"

    def __init__(self, mentions: MentionRepository, clock=None, repository_timeout: Optional[float] = None):
        super().__init__("ViralContentDetector", mentions, clock=clock, repository_timeout=repository_timeout)

    def run(self, job: WorkspaceJob) -> List[ViralContent]:
        return self.detect_viral_content(job.workspace_id, job.options)

    def detect_viral_content(self, workspace_id: str, options: Optional[ViralOptions] = None) -> List[ViralContent]:
        options = options or ViralOptions(
            min_virality_score=settings.VIRAL_MIN_SCORE,
            time_window_hours=settings.VIRAL_WINDOW_HOURS,
            limit=settings.VIRAL_LIMIT,
        )
        now = self.clock()
        window = TimeRange(now - timedelta(hours=options.time_window_hours), now)
        mentions = self.fetch_mentions(workspace_id, window, options.platforms)

        scored: List[ViralContent] = []
        for m in mentions:
            score, velocity, _ = mention_virality(m, now, options.time_window_hours)
            if score < options.min_virality_score:
                continue
            scored.append(ViralContent(
                mention_id=m.id,
                platform=m.platform,
                content=m.content,
                author_username=m.author_username,
                author_followers=m.author_followers,
                virality_score=score,
                engagement=m.engagement,
                reach=m.reach,
                engagement_velocity=velocity,
                published_at=m.published_at,
            ))

        scored.sort(key=lambda v: (-v.virality_score, v.mention_id))
        self.logger.info(f"🔥 {workspace_id}: {len(scored)} viral mentions out of {len(mentions)}")
        return scored[:options.limit]
