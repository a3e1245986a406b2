"""
Alert delivery.

The engine decides whether and what to send; an AlertDispatcher only
delivers it and reports per-channel success.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging
import time

import requests

from config.settings import settings
from models.errors import DownstreamAlertFailure
from models.schemas import AlertChannel, AlertChannelResult, Crisis

logger = logging.getLogger(__name__)


def build_alert_message(crisis: Crisis) -> str:
    return (
        f"{crisis.title}\n"
        f"Severity: {crisis.severity.value.upper()} | Score: {crisis.crisis_score}/100\n"
        f"Mentions: {crisis.mention_volume} | Sentiment: {crisis.sentiment_score:.2f}\n"
        f"{crisis.description}"
    )


class AlertDispatcher(ABC):
    @abstractmethod
    def send(
        self,
        crisis: Crisis,
        channels: List[AlertChannel],
        recipients: List[str],
        message: str,
    ) -> List[AlertChannelResult]:
        """Deliver `message` on every channel; one result per channel, in order."""


class LogAlertDispatcher(AlertDispatcher):
    """Writes alerts to the log. Used by the demo and local runs."""

    def __init__(self):
        self.sent: List[Dict] = []

    def send(self, crisis, channels, recipients, message):
        results = []
        for channel in channels:
            logger.warning(f"📣 [{channel.value}] to {', '.join(recipients) or '-'}: {crisis.title}")
            self.sent.append({"crisis_id": crisis.id, "channel": channel.value, "recipients": list(recipients)})
            results.append(AlertChannelResult(channel=channel, success=True))
        return results


class HttpAlertDispatcher(AlertDispatcher):
    """
    POSTs a JSON payload per channel to the endpoint configured for it
    (settings.ALERT_ENDPOINTS maps channel name -> URL).
    """

    def __init__(
        self,
        endpoints: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: float = 0.5,
    ):
        self.endpoints = dict(settings.ALERT_ENDPOINTS if endpoints is None else endpoints)
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": settings.USER_AGENT})
        self.timeout = timeout or settings.ALERT_TIMEOUT_SECONDS
        self.max_retries = max(1, max_retries or settings.ALERT_MAX_RETRIES)
        self.backoff = backoff

    def send(self, crisis, channels, recipients, message):
        results = []
        for channel in channels:
            try:
                self._deliver(channel, self._payload(crisis, channel, recipients, message))
                results.append(AlertChannelResult(channel=channel, success=True))
            except DownstreamAlertFailure as e:
                logger.error(f"Alert channel {channel.value} failed for crisis {crisis.id}: {e.message}")
                results.append(AlertChannelResult(channel=channel, success=False, error=e.message))
        return results

    def _payload(self, crisis: Crisis, channel: AlertChannel, recipients: List[str], message: str) -> Dict:
        return {
            "channel": channel.value,
            "recipients": list(recipients),
            "message": message,
            "crisis": {
                "id": crisis.id,
                "workspace_id": crisis.workspace_id,
                "title": crisis.title,
                "severity": crisis.severity.value,
                "crisis_score": crisis.crisis_score,
                "detected_at": crisis.detected_at.isoformat(),
            },
        }

    def _deliver(self, channel: AlertChannel, payload: Dict) -> None:
        """HTTP POST with retry + exponential backoff."""
        url = self.endpoints.get(channel.value)
        if not url:
            raise DownstreamAlertFailure(f"No endpoint configured for channel '{channel.value}'", channel.value)

        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = self.session.post(url, json=payload, timeout=self.timeout)
                resp.raise_for_status()
                return
            except requests.RequestException as e:
                last_error = e
                if attempt + 1 < self.max_retries:
                    wait = self.backoff * (2 ** attempt)
                    logger.warning(
                        f"Attempt {attempt+1} failed for {channel.value} alert: {e}. Retrying in {wait:.1f}s"
                    )
                    time.sleep(wait)
        raise DownstreamAlertFailure(
            f"{channel.value} delivery failed after {self.max_retries} attempts: {last_error}",
            channel.value,
        )
