"""
Conversation Clusterer Agent
Greedy single-pass grouping of mentions by keyword overlap (Jaccard).

Each run builds clusters from scratch; there is no linkage to clusters
produced by earlier runs.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from itertools import combinations
from typing import List, Optional, Set

import numpy as np

from agents.base import Agent
from agents.terms import split_terms
from agents.trend_tracker import average_sentiment_score
from config.settings import settings
from db.repositories import ClusterRepository, MentionRepository
from models.schemas import (
    ClusterOptions, ConversationCluster, Mention, Sentiment, TimeRange, WorkspaceJob,
)


def jaccard(a: Set[str], b: Set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def mean_pairwise_jaccard(keyword_sets: List[Set[str]]) -> float:
    if len(keyword_sets) < 2:
        return 1.0
    sims = np.array([jaccard(a, b) for a, b in combinations(keyword_sets, 2)])
    return float(sims.mean())


@dataclass
class _Candidate:
    key: str
    keywords: Set[str] = field(default_factory=set)
    members: List[Mention] = field(default_factory=list)
    member_keywords: List[List[str]] = field(default_factory=list)
    member_hashtags: List[List[str]] = field(default_factory=list)

    def add(self, mention: Mention, keywords: List[str], hashtags: List[str]) -> None:
        self.members.append(mention)
        self.member_keywords.append(keywords)
        self.member_hashtags.append(hashtags)
        self.keywords.update(keywords)


class ConversationClusterer(Agent):
    """
    Input:  WorkspaceJob(options=ClusterOptions)
    Output: List[ConversationCluster] (persisted), largest first
    """

    job_kind = "clusters"

    def __init__(
        self,
        mentions: MentionRepository,
        clusters: ClusterRepository,
        clock=None,
        repository_timeout: Optional[float] = None,
    ):
        super().__init__("ConversationClusterer", mentions, clock=clock, repository_timeout=repository_timeout)
        self.clusters = clusters

    def run(self, job: WorkspaceJob) -> List[ConversationCluster]:
        return self.cluster_conversations(job.workspace_id, job.options)

    def cluster_conversations(
        self, workspace_id: str, options: Optional[ClusterOptions] = None
    ) -> List[ConversationCluster]:
        options = options or ClusterOptions(
            min_size=settings.CLUSTER_MIN_SIZE,
            min_cohesion=settings.CLUSTER_MIN_COHESION,
            days=settings.CLUSTER_DAYS,
            limit=settings.CLUSTER_LIMIT,
        )
        now = self.clock()
        mentions = self.fetch_mentions(workspace_id, TimeRange(now - timedelta(days=options.days), now))
        if len(mentions) < options.min_size:
            self.logger.info(f"💬 {workspace_id}: {len(mentions)} mentions, below min cluster size")
            return []

        candidates = self.group(mentions, options.min_cohesion)
        survivors = [c for c in candidates if len(c.members) >= options.min_size]
        # stable: equal sizes keep creation order
        survivors.sort(key=lambda c: len(c.members), reverse=True)

        saved = [
            self.clusters.create(self._materialize(workspace_id, c, now))
            for c in survivors[:options.limit]
        ]
        self.logger.info(
            f"💬 {workspace_id}: {len(saved)} clusters from {len(mentions)} mentions "
            f"({len(candidates) - len(survivors)} candidates below size {options.min_size})"
        )
        return saved

    @staticmethod
    def group(mentions: List[Mention], min_cohesion: float) -> List[_Candidate]:
        """Assign each mention to the first cluster it is cohesive enough with."""
        candidates: List[_Candidate] = []
        for m in mentions:
            keywords, hashtags = split_terms(m.content)
            if not keywords:
                continue
            kw_set = set(keywords)
            target = next(
                (c for c in candidates if jaccard(kw_set, c.keywords) >= min_cohesion),
                None,
            )
            if target is None:
                target = _Candidate(key="_".join(keywords[:3]))
                candidates.append(target)
            target.add(m, keywords, hashtags)
        return candidates

    def _materialize(self, workspace_id: str, c: _Candidate, now: datetime) -> ConversationCluster:
        members = c.members
        size = len(members)

        keyword_counts = Counter(k for kws in c.member_keywords for k in kws)
        hashtag_counts = Counter(h for tags in c.member_hashtags for h in tags)
        top_keywords = [k for k, _ in keyword_counts.most_common(10)]
        top_hashtags = [h for h, _ in hashtag_counts.most_common(10)]

        days = Counter(m.published_at.date() for m in members)
        peak_day, peak_volume = min(days.items(), key=lambda kv: (-kv[1], kv[0]))

        total_engagement = sum(m.engagement for m in members)
        sentiments = Counter(m.sentiment for m in members if m.sentiment is not None)
        platforms = Counter(m.platform for m in members)
        contributors = Counter(m.author_username or m.author_id for m in members)

        name_terms = top_keywords[:3]
        return ConversationCluster(
            workspace_id=workspace_id,
            name=" & ".join(k.title() for k in name_terms),
            description=(
                f"Conversation about {', '.join(name_terms)} "
                f"({size} mentions across {len(platforms)} platform{'s' if len(platforms) != 1 else ''})"
            ),
            keywords=top_keywords,
            hashtags=top_hashtags,
            mention_ids=[m.id for m in members],
            size=size,
            cohesion_score=mean_pairwise_jaccard([set(k) for k in c.member_keywords]),
            diversity_score=len({m.author_id for m in members}) / size,
            start_date=min(m.published_at for m in members),
            end_date=max(m.published_at for m in members),
            peak_date=datetime.combine(peak_day, time.min),
            peak_volume=peak_volume,
            total_engagement=total_engagement,
            average_engagement=total_engagement / size,
            total_reach=sum(m.reach for m in members),
            average_sentiment=average_sentiment_score(members),
            sentiment_distribution={
                "positive": sentiments.get(Sentiment.POSITIVE, 0),
                "neutral": sentiments.get(Sentiment.NEUTRAL, 0),
                "negative": sentiments.get(Sentiment.NEGATIVE, 0),
            },
            platform_distribution=dict(platforms),
            top_contributors=[
                {"username": name, "mentions": count}
                for name, count in contributors.most_common(10)
            ],
            topics=top_keywords[:5],
            created_at=now,
        )
