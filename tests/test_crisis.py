"""
Crisis anomaly detection and scoring tests.
"""

import pytest

from agents.crisis_detector import (
    aggregate_influencers, crisis_score, detect_sentiment_anomaly, detect_volume_anomaly,
    sentiment_severity, volume_severity,
)
from models.errors import InvalidConfig
from models.schemas import CrisisConfig, CrisisSeverity, CrisisStatus, CrisisType

from conftest import NEGATIVE, NEUTRAL, POSITIVE, WORKSPACE


class TestAnomalies:
    def test_sentiment_anomaly_critical(self):
        result = detect_sentiment_anomaly(-0.75, -0.1, -0.5)
        assert result.is_anomaly
        assert result.change == pytest.approx(-0.65)
        assert result.severity == CrisisSeverity.CRITICAL
        assert result.score == pytest.approx(65)

    def test_negative_but_stable_sentiment_is_not_anomalous(self):
        assert not detect_sentiment_anomaly(-0.6, -0.55, -0.5).is_anomaly

    def test_volume_anomaly_critical(self):
        result = detect_volume_anomaly(300, 50, 200)
        assert result.is_anomaly
        assert result.change == pytest.approx(500)
        assert result.severity == CrisisSeverity.CRITICAL
        assert result.score == pytest.approx(100)

    def test_volume_without_baseline(self):
        result = detect_volume_anomaly(3, 0, 200)
        assert result.change == pytest.approx(300)
        assert result.is_anomaly

    @pytest.mark.parametrize("current,change,expected", [
        (-0.8, 0.0, CrisisSeverity.CRITICAL),
        (-0.1, -0.6, CrisisSeverity.CRITICAL),
        (-0.6, 0.0, CrisisSeverity.HIGH),
        (-0.4, 0.0, CrisisSeverity.MEDIUM),
        (-0.1, -0.25, CrisisSeverity.MEDIUM),
        (0.2, 0.1, CrisisSeverity.LOW),
    ])
    def test_sentiment_severity_order(self, current, change, expected):
        assert sentiment_severity(current, change) == expected

    @pytest.mark.parametrize("change,expected", [
        (500, CrisisSeverity.CRITICAL),
        (300, CrisisSeverity.HIGH),
        (200, CrisisSeverity.MEDIUM),
        (199.9, CrisisSeverity.LOW),
    ])
    def test_volume_severity_order(self, change, expected):
        assert volume_severity(change) == expected


class TestCrisisScore:
    def test_score_is_clamped_to_100(self):
        assert crisis_score(-1, -2, 10_000, 100, 50, 1000) == 100

    def test_score_floor(self):
        assert crisis_score(0.5, 0.3, -50, 0, 0, 0) == 0

    def test_rounds_half_up(self):
        # 20 * (62.5 / 500) == 2.5
        assert crisis_score(0, 0, 62.5, 0, 0, 0) == 3

    def test_influencers_aggregated_by_username(self, mention):
        mentions = [
            mention("x", is_influencer=True, author_username="big", author_followers=900),
            mention("x", is_influencer=True, author_username="big", author_followers=900),
            mention("x", is_influencer=True, author_username="huge", author_followers=5000),
            mention("x", is_influencer=False, author_username="nobody"),
        ]
        top = aggregate_influencers(mentions)
        assert [i["username"] for i in top] == ["huge", "big"]
        assert top[1]["mention_count"] == 2


class TestMonitorForCrisis:
    def test_insufficient_data_is_a_normal_negative_result(self, engine, mention, seed):
        seed(mention.many(5, "service outage", 5, 50, **NEGATIVE))
        result = engine.crisis_detector.monitor_for_crisis(WORKSPACE, CrisisConfig())
        assert result.crisis_detected is False
        assert result.insufficient_data is True
        assert result.crisis is None

    def test_sentiment_and_volume_spike_opens_critical_crisis(self, engine, mention, seed):
        seed([
            mention(f"Terrible outage #down app broken {i}", minutes_ago=5 + i, likes=i, **NEGATIVE)
            for i in range(30)
        ])
        seed(mention.many(5, "all good here", 70, 40, **POSITIVE))

        result = engine.crisis_detector.monitor_for_crisis(WORKSPACE, CrisisConfig())

        assert result.crisis_detected
        crisis = result.crisis
        assert crisis.type == CrisisType.SENTIMENT_SPIKE
        assert crisis.severity == CrisisSeverity.CRITICAL
        assert crisis.status == CrisisStatus.DETECTED
        assert crisis.crisis_score == 100
        assert crisis.volume_change == pytest.approx(500)
        assert crisis.baseline_volume == 5
        assert crisis.mention_volume == 30
        assert crisis.negative_mention_percentage == pytest.approx(100)
        assert crisis.hashtags == ["#down"]
        assert "outage" in crisis.keywords
        assert crisis.title.startswith("CRITICAL: Sentiment Spike - ")
        assert len(crisis.sample_mentions) == 5
        assert crisis.sample_mentions[0].endswith(" 29")
        assert [e.event for e in crisis.timeline] == ["crisis_detected"]
        assert engine.crises.find_by_id(crisis.id).crisis_score == 100

    def test_sentiment_only_is_negative_trend(self, engine, mention, seed):
        seed(mention.many(12, "refund refused again", 5, 50, **NEGATIVE))
        seed(mention.many(12, "ordinary chatter", 65, 50, **NEUTRAL))

        result = engine.crisis_detector.monitor_for_crisis(WORKSPACE, CrisisConfig())

        assert result.crisis_detected
        assert result.crisis.type == CrisisType.NEGATIVE_TREND
        # severity is the max of both anomaly severities
        assert result.crisis.severity == CrisisSeverity.CRITICAL
        assert result.metrics.volume_change == pytest.approx(0)
        assert result.crisis.title.startswith("CRITICAL: Negative Trend")

    def test_anomaly_below_score_threshold_opens_nothing(self, engine, mention, seed):
        seed(mention.many(30, "ordinary chatter", 5, 50, **NEUTRAL))
        seed(mention.many(5, "ordinary chatter", 70, 40, **NEUTRAL))

        result = engine.crisis_detector.monitor_for_crisis(WORKSPACE, CrisisConfig())

        assert result.crisis_detected is False
        assert result.insufficient_data is False
        assert result.metrics.volume_change == pytest.approx(500)
        # 20 (volume) + 1.5 (mentions) rounds to 22
        assert result.metrics.crisis_score == 22
        assert engine.crisis_manager.get_crisis_history(WORKSPACE)[1] == 0

    def test_windows_are_adjacent_and_equal_length(self, engine, mention, seed):
        seed(mention.many(10, "service outage", 5, 50, **NEGATIVE))
        seed([mention("older", minutes_ago=120, **POSITIVE)])      # baseline start is inclusive
        seed([mention("ancient", minutes_ago=121, **POSITIVE)])    # outside both windows

        result = engine.crisis_detector.monitor_for_crisis(WORKSPACE, CrisisConfig())
        assert result.crisis.baseline_volume == 1

    @pytest.mark.parametrize("kwargs", [
        {"time_window": 4},
        {"time_window": 1441},
        {"sentiment_threshold": -1.5},
        {"volume_threshold": -1},
        {"min_mentions": 0},
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(InvalidConfig):
            CrisisConfig(**kwargs)
