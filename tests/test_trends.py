"""
Trend tracker tests: scoring, status ordering, upsert semantics, listing
and retention.
"""

from datetime import timedelta

import pytest

from agents.trend_tracker import (
    average_sentiment_score, determine_trend_status, growth_rate, growth_velocity, term_virality,
)
from models.errors import InvalidConfig
from models.schemas import Trend, TrendFilter, TrendStatus, TrendType

from conftest import NOW, WORKSPACE


def _trend(term, current, status=TrendStatus.STABLE, virality=10.0, growth=0.0, last_seen=NOW, platforms=("twitter",)):
    return Trend(
        workspace_id=WORKSPACE,
        term=term,
        type=TrendType.HASHTAG if term.startswith("#") else TrendType.KEYWORD,
        status=status,
        first_seen_at=last_seen,
        last_seen_at=last_seen,
        platforms=list(platforms),
        current_volume=current,
        peak_volume=current,
        growth_rate=growth,
        virality_score=virality,
    )


class TestScoringFunctions:
    def test_growth_rate_with_baseline(self):
        assert growth_rate(40, 5) == pytest.approx(700.0)

    def test_growth_rate_without_baseline(self):
        assert growth_rate(6, 0) == pytest.approx(600.0)

    @pytest.mark.parametrize("rate,momentum,expected", [
        (700, 100, TrendStatus.VIRAL),
        (10, 95, TrendStatus.VIRAL),
        (250, 60, TrendStatus.EMERGING),
        (60, 30, TrendStatus.RISING),
        (-30, 0, TrendStatus.DECLINING),
        (0, 0, TrendStatus.STABLE),
    ])
    def test_status_first_match_wins(self, rate, momentum, expected):
        assert determine_trend_status(rate, momentum) == expected

    def test_virality_is_bounded(self):
        assert term_virality(10_000, 10**9, 10_000) == pytest.approx(100.0)
        assert term_virality(0, 0, 0) == 0.0

    @pytest.mark.parametrize("current,previous,expected", [
        (3, 0, 1.0),
        (0, 0, 0.0),
        (9, 3, 2.0),
        (1, 4, -0.75),
    ])
    def test_growth_velocity(self, current, previous, expected):
        assert growth_velocity(current, previous) == pytest.approx(expected)


class TestDetectTrends:
    def test_launch_hashtag_goes_viral(self, engine, mention, seed):
        seed(mention.many(40, "#launch", start_minutes_ago=5, spread_minutes=23 * 60))
        seed(mention.many(5, "#launch", start_minutes_ago=25 * 60, spread_minutes=20 * 60))

        result = engine.trend_tracker.detect_trends(WORKSPACE)
        launch = next(t for t in result.trends if t.term == "#launch")

        assert launch.current_volume == 40
        assert launch.previous_volume == 5
        assert launch.growth_rate == pytest.approx(700.0)
        assert launch.status == TrendStatus.VIRAL
        assert launch.type == TrendType.HASHTAG
        assert launch.momentum == 100.0
        assert launch.peak_volume == 40
        assert result.summary.viral == 1
        assert result.summary.total == len(result.trends)

    def test_terms_below_min_volume_are_ignored(self, engine, mention, seed):
        seed(mention.many(4, "rarely mentioned", start_minutes_ago=10, spread_minutes=60))
        result = engine.trend_tracker.detect_trends(WORKSPACE)
        assert result.trends == []
        assert engine.trends.get(WORKSPACE, "rarely") is None

    def test_current_window_is_half_open(self, engine, mention, seed):
        # exactly 24h ago belongs to the current window
        seed([mention("boundary", minutes_ago=24 * 60) for _ in range(5)])
        result = engine.trend_tracker.detect_trends(WORKSPACE)
        trend = next(t for t in result.trends if t.term == "boundary")
        assert trend.current_volume == 5
        assert trend.previous_volume == 0

    def test_enrichment_fields(self, engine, mention, seed):
        seed([
            mention("shipping delays", minutes_ago=30 + i, likes=10, reach=1000,
                    is_influencer=(i == 0), author_username=f"inf{i}", platform="reddit" if i % 2 else "twitter")
            for i in range(5)
        ])
        trend = next(t for t in engine.trend_tracker.detect_trends(WORKSPACE).trends if t.term == "shipping")
        assert trend.total_engagement == 50
        assert trend.average_engagement == pytest.approx(10.0)
        assert trend.reach == 5000
        assert trend.influencer_count == 1
        assert trend.top_influencers == ["inf0"]
        assert trend.platforms == ["reddit", "twitter"]
        assert 0 <= trend.virality_score <= 100

    def test_platform_filter(self, engine, mention, seed):
        seed(mention.many(5, "reddit thread", 10, 60, platform="reddit"))
        seed(mention.many(5, "twitter thread", 10, 60, platform="twitter"))
        terms = {t.term for t in engine.trend_tracker.detect_trends(WORKSPACE, platforms=["reddit"]).trends}
        assert "reddit" in terms
        assert "twitter" not in terms

    def test_detection_is_idempotent(self, engine, mention, seed):
        seed(mention.many(12, "#promo spring sale", 5, 600, likes=20, reach=500))
        seed(mention.many(4, "#promo spring sale", 25 * 60, 300))

        first = {t.term: t for t in engine.trend_tracker.detect_trends(WORKSPACE).trends}
        second = {t.term: t for t in engine.trend_tracker.detect_trends(WORKSPACE).trends}

        assert first.keys() == second.keys()
        for term, a in first.items():
            b = second[term]
            assert (a.growth_rate, a.status, a.virality_score, a.momentum, a.peak_volume) == \
                   (b.growth_rate, b.status, b.virality_score, b.momentum, b.peak_volume)
            assert a.id == b.id


    def test_unscored_mentions_do_not_dilute_sentiment(self, engine, mention, seed):
        seed([mention("#launch", minutes_ago=10, sentiment_score=-1.0)])
        seed([mention("#launch", minutes_ago=20 + i) for i in range(4)])

        launch = next(t for t in engine.trend_tracker.detect_trends(WORKSPACE).trends if t.term == "#launch")

        assert launch.current_volume == 5
        assert launch.sentiment_score == pytest.approx(-1.0)

    def test_sentiment_average_without_any_scores(self, mention):
        assert average_sentiment_score([mention("x"), mention("y")]) == 0.0
        assert average_sentiment_score([]) == 0.0


class TestTrendRepository:
    def test_peak_volume_never_decreases(self, engine):
        assert engine.trends.upsert(_trend("#sale", 10)).peak_volume == 10
        lower = engine.trends.upsert(_trend("#sale", 3))
        assert lower.current_volume == 3
        assert lower.peak_volume == 10
        assert engine.trends.upsert(_trend("#sale", 12)).peak_volume == 12

    def test_first_seen_only_written_on_insert(self, engine):
        first = engine.trends.upsert(_trend("#sale", 10, last_seen=NOW - timedelta(days=2)))
        again = engine.trends.upsert(_trend("#sale", 8, last_seen=NOW))
        assert again.first_seen_at == first.first_seen_at
        assert again.last_seen_at == NOW


class TestHashtagTracking:
    def test_returns_none_without_matches(self, engine):
        assert engine.trend_tracker.track_hashtag_trend(WORKSPACE, "#nothing") is None

    def test_daily_velocity_and_status(self, engine, mention, seed):
        seed([mention("loving #Spring", minutes_ago=2 * 24 * 60 + 60) for _ in range(2)])
        seed([mention("loving #spring", minutes_ago=24 * 60 + 60) for _ in range(4)])
        seed([mention("loving #spring", minutes_ago=60) for _ in range(6)])

        trend = engine.trend_tracker.track_hashtag_trend(WORKSPACE, "Spring", days=7)

        assert trend.term == "#spring"
        assert trend.current_volume == 12
        # (4-2)/2 = 1.0, (6-4)/4 = 0.5
        assert trend.growth_velocity == pytest.approx(0.75)
        assert trend.status == TrendStatus.RISING
        assert trend.first_seen_at == NOW - timedelta(minutes=2 * 24 * 60 + 60)

    def test_single_day_has_zero_velocity(self, engine, mention, seed):
        seed([mention("#solo post", minutes_ago=30) for _ in range(3)])
        trend = engine.trend_tracker.track_hashtag_trend(WORKSPACE, "#solo")
        assert trend.growth_velocity == 0.0
        assert trend.status == TrendStatus.STABLE


class TestGrowthVelocity:
    def test_standalone_velocity(self, engine, mention, seed):
        seed([mention("refund please", minutes_ago=30) for _ in range(3)])
        assert engine.trend_tracker.calculate_growth_velocity(WORKSPACE, "refund", 24) == 1.0

        seed([mention("refund again", minutes_ago=30 * 60) for _ in range(3)])
        assert engine.trend_tracker.calculate_growth_velocity(WORKSPACE, "refund", 24) == 0.0


class TestTrendListing:
    def test_filter_sort_and_paginate(self, engine):
        engine.trends.upsert(_trend("#a", 10, status=TrendStatus.VIRAL, virality=80))
        engine.trends.upsert(_trend("#b", 10, status=TrendStatus.VIRAL, virality=60))
        engine.trends.upsert(_trend("#c", 10, status=TrendStatus.STABLE, virality=90))

        trends, total = engine.trend_tracker.get_trends(TrendFilter(WORKSPACE, status=TrendStatus.VIRAL))
        assert total == 2
        assert [t.term for t in trends] == ["#a", "#b"]

        page, total = engine.trend_tracker.get_trends(TrendFilter(WORKSPACE), limit=1, offset=1)
        assert total == 3
        assert [t.term for t in page] == ["#a"]

    def test_platform_filter_in_listing(self, engine):
        engine.trends.upsert(_trend("#a", 10, platforms=("reddit",)))
        engine.trends.upsert(_trend("#b", 10, platforms=("twitter", "tiktok")))
        trends, total = engine.trend_tracker.get_trends(TrendFilter(WORKSPACE, platforms=["tiktok"]))
        assert total == 1
        assert trends[0].term == "#b"

    def test_unknown_sort_field_rejected(self, engine):
        with pytest.raises(InvalidConfig):
            engine.trend_tracker.get_trends(TrendFilter(WORKSPACE), sort_by="drop table")


class TestTrendRetention:
    def test_stale_trends_deactivated_then_deleted(self, engine, clock):
        engine.trends.upsert(_trend("#old", 10, last_seen=NOW - timedelta(days=8)))
        engine.trends.upsert(_trend("#fresh", 10, last_seen=NOW - timedelta(days=1)))

        assert engine.trend_tracker.cleanup_stale_trends() == {"deactivated": 1, "deleted": 0}
        old = engine.trends.get(WORKSPACE, "#old")
        assert old.is_active is False
        assert old.expires_at == NOW + timedelta(days=30)
        assert engine.trends.get(WORKSPACE, "#fresh").is_active is True

        clock.advance(days=31)
        result = engine.trend_tracker.cleanup_stale_trends()
        assert result["deleted"] == 1
        assert engine.trends.get(WORKSPACE, "#old") is None
