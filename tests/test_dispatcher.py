"""
Alert dispatcher tests with a stubbed HTTP session.
"""

import requests

from models.schemas import AlertChannel
from notifications.dispatcher import HttpAlertDispatcher, LogAlertDispatcher, build_alert_message


class StubResponse:
    def __init__(self, status_code):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class StubSession:
    """Returns the queued status codes in order, then 200."""

    def __init__(self, statuses=()):
        self.headers = {}
        self.statuses = list(statuses)
        self.posts = []

    def post(self, url, json=None, timeout=None):
        self.posts.append({"url": url, "json": json, "timeout": timeout})
        return StubResponse(self.statuses.pop(0) if self.statuses else 200)


ENDPOINTS = {"email": "https://alerts.example.com/email", "slack": "https://hooks.example.com/slack"}


class TestHttpAlertDispatcher:
    def test_posts_one_payload_per_channel(self, make_crisis):
        crisis = make_crisis()
        session = StubSession()
        dispatcher = HttpAlertDispatcher(ENDPOINTS, session=session, timeout=3, backoff=0)

        results = dispatcher.send(crisis, [AlertChannel.EMAIL, AlertChannel.SLACK], ["ops@example.com"], "hello")

        assert [r.success for r in results] == [True, True]
        assert [p["url"] for p in session.posts] == [ENDPOINTS["email"], ENDPOINTS["slack"]]
        payload = session.posts[0]["json"]
        assert payload["channel"] == "email"
        assert payload["message"] == "hello"
        assert payload["crisis"]["id"] == crisis.id
        assert payload["crisis"]["severity"] == "high"
        assert session.posts[0]["timeout"] == 3
        assert "User-Agent" in session.headers

    def test_missing_endpoint_fails_that_channel_only(self, make_crisis):
        session = StubSession()
        dispatcher = HttpAlertDispatcher(ENDPOINTS, session=session, backoff=0)

        results = dispatcher.send(make_crisis(), [AlertChannel.SMS, AlertChannel.EMAIL], [], "hello")

        assert results[0].success is False
        assert "No endpoint configured" in results[0].error
        assert results[1].success is True
        assert len(session.posts) == 1

    def test_retries_then_succeeds(self, make_crisis):
        session = StubSession([503])
        dispatcher = HttpAlertDispatcher(ENDPOINTS, session=session, max_retries=2, backoff=0)

        [result] = dispatcher.send(make_crisis(), [AlertChannel.EMAIL], [], "hello")

        assert result.success is True
        assert len(session.posts) == 2

    def test_gives_up_after_max_retries(self, make_crisis):
        session = StubSession([500, 502, 503])
        dispatcher = HttpAlertDispatcher(ENDPOINTS, session=session, max_retries=3, backoff=0)

        [result] = dispatcher.send(make_crisis(), [AlertChannel.EMAIL], [], "hello")

        assert result.success is False
        assert "after 3 attempts" in result.error
        assert len(session.posts) == 3


class TestLogAlertDispatcher:
    def test_records_every_channel(self, make_crisis):
        crisis = make_crisis()
        dispatcher = LogAlertDispatcher()
        results = dispatcher.send(crisis, [AlertChannel.PUSH, AlertChannel.WEBHOOK], ["a"], "msg")
        assert all(r.success for r in results)
        assert [s["channel"] for s in dispatcher.sent] == ["push", "webhook"]


def test_alert_message_summarises_crisis(make_crisis):
    crisis = make_crisis(score=82)
    message = build_alert_message(crisis)
    assert message.splitlines()[0] == crisis.title
    assert "Score: 82/100" in message
    assert "Severity: HIGH" in message
