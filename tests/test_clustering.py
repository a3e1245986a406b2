"""
Conversation clusterer tests.
"""

from datetime import datetime

import pytest

from agents.clusterer import ConversationClusterer, jaccard, mean_pairwise_jaccard
from models.errors import InvalidConfig
from models.schemas import ClusterOptions

from conftest import WORKSPACE


class TestSimilarity:
    def test_jaccard(self):
        assert jaccard({"a", "b"}, {"a", "b"}) == 1.0
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard(set(), set()) == 0.0

    def test_mean_pairwise(self):
        sets = [{"alpha", "bravo"}, {"alpha", "bravo"}, {"alpha", "bravo", "charlie"}]
        assert mean_pairwise_jaccard(sets) == pytest.approx((1 + 2 / 3 + 2 / 3) / 3)

    def test_single_member_is_fully_cohesive(self):
        assert mean_pairwise_jaccard([{"alpha"}]) == 1.0


class TestGrouping:
    def test_joins_first_cohesive_cluster(self, mention):
        mentions = [
            mention("checkout payment broken"),
            mention("checkout payment broken again"),
            mention("sunny weather today"),
        ]
        groups = ConversationClusterer.group(mentions, 0.5)
        assert [len(g.members) for g in groups] == [2, 1]
        assert groups[0].keywords == {"checkout", "payment", "broken", "again"}

    def test_mentions_without_keywords_are_skipped(self, mention):
        groups = ConversationClusterer.group([mention("the and #tag"), mention("so it is")], 0.5)
        assert groups == []


class TestClusterConversations:
    def test_identical_conversation_forms_one_cluster(self, engine, mention, seed):
        seed([
            mention("checkout payment broken", minutes_ago=10 + i, author_id=f"a{i % 2}", likes=2, reach=10)
            for i in range(5)
        ])
        clusters = engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions())

        assert len(clusters) == 1
        c = clusters[0]
        assert c.size == 5 == len(c.mention_ids)
        assert c.cohesion_score == pytest.approx(1.0)
        assert c.diversity_score == pytest.approx(2 / 5)
        assert c.name == "Checkout & Payment & Broken"
        assert c.total_engagement == 10
        assert c.total_reach == 50
        assert c.id is not None

    def test_four_member_candidate_is_discarded(self, engine, mention, seed):
        seed([mention("checkout payment broken", minutes_ago=10 + i) for i in range(4)])
        seed([mention("sunny weather today", minutes_ago=30), mention("football match tonight", minutes_ago=31)])

        assert engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions()) == []
        assert engine.clusters.find(WORKSPACE) == []

    def test_too_few_mentions_short_circuits(self, engine, mention, seed):
        seed([mention("checkout payment broken") for _ in range(3)])
        assert engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions()) == []

    def test_sorted_by_size_and_limited(self, engine, mention, seed):
        seed([mention("checkout payment broken", minutes_ago=10 + i) for i in range(5)])
        seed([mention("support ticket waiting", minutes_ago=40 + i) for i in range(7)])
        seed([mention("pricing billing expensive", minutes_ago=80 + i) for i in range(6)])

        clusters = engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions(limit=2))
        assert [c.size for c in clusters] == [7, 6]
        assert len(engine.clusters.find(WORKSPACE)) == 2

    def test_average_sentiment_ignores_unscored_mentions(self, engine, mention, seed):
        seed([mention("checkout payment broken", minutes_ago=10, sentiment_score=-1.0)])
        seed([mention("checkout payment broken", minutes_ago=20 + i) for i in range(4)])

        [cluster] = engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions())

        assert cluster.size == 5
        assert cluster.average_sentiment == pytest.approx(-1.0)

    def test_peak_day_is_busiest_utc_day(self, engine, mention, seed, clock):
        seed([mention("delivery courier late", minutes_ago=30 + i) for i in range(2)])
        seed([mention("delivery courier late", minutes_ago=24 * 60 + i) for i in range(4)])

        [cluster] = engine.clusterer.cluster_conversations(WORKSPACE, ClusterOptions(min_size=5))
        assert cluster.peak_volume == 4
        assert cluster.peak_date == datetime(2026, 3, 9)
        assert cluster.start_date < cluster.end_date
        assert 0 <= cluster.cohesion_score <= 1

    @pytest.mark.parametrize("kwargs", [
        {"min_size": 0},
        {"min_cohesion": 1.5},
        {"days": 0},
        {"limit": 0},
    ])
    def test_invalid_options(self, kwargs):
        with pytest.raises(InvalidConfig):
            ClusterOptions(**kwargs)
