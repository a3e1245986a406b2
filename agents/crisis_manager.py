"""
Crisis lifecycle management: alerts, status transitions, responses,
assignment, post-mortems, dashboard and history.

Every mutation appends to the crisis timeline, which is append-only.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging
import math
import traceback

import numpy as np

from config.settings import settings
from db.repositories import CrisisRepository
from models.errors import CrisisNotFound, DownstreamAlertFailure, InvalidConfig, PreconditionFailed
from models.schemas import (
    ACTIVE_CRISIS_STATUSES, AlertChannel, AlertChannelResult, AlertRecord, AlertSendResult,
    Crisis, CrisisFilter, CrisisResponse, CrisisSeverity, CrisisStatus, PostMortem,
)
from notifications.dispatcher import AlertDispatcher, build_alert_message
from utils.timing import call_with_timeout, utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    CrisisStatus.DETECTED: {
        CrisisStatus.ACKNOWLEDGED, CrisisStatus.RESPONDING,
        CrisisStatus.RESOLVED, CrisisStatus.FALSE_ALARM,
    },
    CrisisStatus.ACKNOWLEDGED: {
        CrisisStatus.RESPONDING, CrisisStatus.RESOLVED, CrisisStatus.FALSE_ALARM,
    },
    CrisisStatus.RESPONDING: {CrisisStatus.RESOLVED, CrisisStatus.FALSE_ALARM},
    CrisisStatus.RESOLVED: set(),
    CrisisStatus.FALSE_ALARM: set(),
}


def minutes_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    if start is None or end is None:
        return 0
    return int(math.floor((end - start).total_seconds() / 60 + 0.5))


def average_minutes(values: List[int]) -> int:
    if not values:
        return 0
    return int(math.floor(float(np.mean(values)) + 0.5))


class CrisisManager:
    """State-mutating and reporting operations on existing crises."""

    def __init__(
        self,
        crises: CrisisRepository,
        dispatcher: AlertDispatcher,
        clock=None,
        alert_timeout: Optional[float] = None,
    ):
        self.crises = crises
        self.dispatcher = dispatcher
        self.clock = clock or utcnow
        self.alert_timeout = settings.ALERT_TIMEOUT_SECONDS if alert_timeout is None else alert_timeout

    def get_crisis(self, crisis_id: str) -> Crisis:
        crisis = self.crises.find_by_id(crisis_id)
        if crisis is None:
            raise CrisisNotFound(crisis_id)
        return crisis

    # ── Alerts ──────────────────────────────────────────────────────────────

    def send_crisis_alerts(
        self,
        crisis_id: str,
        channels: List[AlertChannel],
        recipients: List[str],
        message: Optional[str] = None,
    ) -> AlertSendResult:
        """
        Dispatch alerts and record the attempt on the crisis. Channel
        failures are reported in the result, never raised; channels that
        succeeded are not rolled back.
        """
        if not channels:
            raise InvalidConfig("At least one alert channel is required", "channels")
        crisis = self.get_crisis(crisis_id)
        channels = list(dict.fromkeys(channels))
        message = message or build_alert_message(crisis)

        try:
            delivered = call_with_timeout(
                self.dispatcher.send,
                self.alert_timeout or None,
                crisis, channels, list(recipients), message,
                error_cls=DownstreamAlertFailure,
                label="alert dispatch",
            )
            by_channel = {r.channel: r for r in delivered}
            results = [
                by_channel.get(c) or AlertChannelResult(channel=c, success=False, error="No result from dispatcher")
                for c in channels
            ]
        except Exception as e:
            logger.error(f"Alert dispatch failed for crisis {crisis_id}: {e}\n{traceback.format_exc()}")
            results = [AlertChannelResult(channel=c, success=False, error=str(e)) for c in channels]

        success = all(r.success for r in results)
        delivered_count = sum(1 for r in results if r.success)
        now = self.clock()
        crisis.alerts.append(AlertRecord(
            channels=channels,
            sent_at=now,
            recipients=list(recipients),
            success=success,
            results=results,
        ))
        crisis.alerts_sent = crisis.alerts_sent or delivered_count > 0
        crisis.add_timeline(
            now,
            "alerts_sent",
            f"Alerts sent via {', '.join(c.value for c in channels)} "
            f"({delivered_count}/{len(channels)} delivered)",
        )
        self.crises.update(crisis)

        for r in results:
            if not r.success:
                logger.error(f"❌ {r.channel.value} alert for crisis {crisis_id} failed: {r.error}")
        return AlertSendResult(success=success, results=results)

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def update_crisis_status(
        self,
        crisis_id: str,
        status: CrisisStatus,
        user_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Crisis:
        crisis = self.get_crisis(crisis_id)
        previous = crisis.status
        if status not in ALLOWED_TRANSITIONS[previous]:
            raise PreconditionFailed(
                f"Cannot move crisis {crisis_id} from {previous.value} to {status.value}"
            )

        now = self.clock()
        crisis.status = status
        if status == CrisisStatus.ACKNOWLEDGED and crisis.acknowledged_at is None:
            crisis.acknowledged_at = now
        if status == CrisisStatus.RESOLVED and crisis.resolved_at is None:
            crisis.resolved_at = now
        if status.is_terminal:
            crisis.is_active = False

        description = f"Status changed from {previous.value} to {status.value}"
        if notes:
            description += f": {notes}"
        crisis.add_timeline(now, "status_changed", description, user_id)
        logger.info(f"Crisis {crisis_id}: {previous.value} → {status.value}")
        return self.crises.update(crisis)

    def add_crisis_response(
        self,
        crisis_id: str,
        user_id: str,
        action: str,
        content: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> Crisis:
        crisis = self.get_crisis(crisis_id)
        now = self.clock()
        crisis.responses.append(CrisisResponse(
            timestamp=now, user_id=user_id, action=action, content=content, platform=platform,
        ))
        if user_id not in crisis.team_members:
            crisis.team_members.append(user_id)
        crisis.add_timeline(now, "response_added", f"Response added: {action}", user_id)
        return self.crises.update(crisis)

    def assign_crisis(self, crisis_id: str, user_ids: List[str], assigned_by: Optional[str] = None) -> Crisis:
        crisis = self.get_crisis(crisis_id)
        crisis.assigned_to = list(dict.fromkeys(user_ids))
        crisis.add_timeline(
            self.clock(),
            "crisis_assigned",
            f"Crisis assigned to {len(crisis.assigned_to)} team member(s)",
            assigned_by,
        )
        return self.crises.update(crisis)

    def create_post_mortem(
        self,
        crisis_id: str,
        root_cause: str,
        response_effectiveness: float,
        lessons_learned: List[str],
        preventive_measures: List[str],
        created_by: str,
    ) -> Crisis:
        if not 0 <= response_effectiveness <= 100:
            raise InvalidConfig("response_effectiveness must be within [0, 100]", "response_effectiveness")
        crisis = self.get_crisis(crisis_id)
        if crisis.status != CrisisStatus.RESOLVED:
            raise PreconditionFailed("Post-mortem can only be created for resolved crises")
        if crisis.post_mortem is not None:
            raise PreconditionFailed(f"Crisis {crisis_id} already has a post-mortem")

        now = self.clock()
        crisis.post_mortem = PostMortem(
            root_cause=root_cause,
            response_effectiveness=response_effectiveness,
            lessons_learned=list(lessons_learned),
            preventive_measures=list(preventive_measures),
            response_time_minutes=minutes_between(crisis.detected_at, crisis.acknowledged_at),
            resolution_time_minutes=minutes_between(crisis.detected_at, crisis.resolved_at),
            created_by=created_by,
            created_at=now,
        )
        crisis.add_timeline(now, "post_mortem_created", "Post-mortem analysis completed", created_by)
        return self.crises.update(crisis)

    # ── Reporting ───────────────────────────────────────────────────────────

    def get_crisis_dashboard(
        self,
        workspace_id: str,
        statuses: Optional[List[CrisisStatus]] = None,
        severities: Optional[List[CrisisSeverity]] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        active = self.crises.find(
            CrisisFilter(workspace_id, statuses=list(ACTIVE_CRISIS_STATUSES)), order="score", limit=10,
        )
        recent = self.crises.find(
            CrisisFilter(
                workspace_id, statuses=statuses, severities=severities,
                start_date=start_date, end_date=end_date,
            ),
            order="recent",
            limit=20,
        )
        everything = self.crises.find(CrisisFilter(workspace_id))

        resolved = [c for c in everything if c.status == CrisisStatus.RESOLVED]
        response_times = [
            minutes_between(c.detected_at, c.acknowledged_at) for c in resolved if c.acknowledged_at
        ]
        resolution_times = [minutes_between(c.detected_at, c.resolved_at) for c in resolved if c.resolved_at]

        since = self.clock() - timedelta(days=30)
        frequency = Counter(c.detected_at.date().isoformat() for c in everything if c.detected_at >= since)

        return {
            "active_crises": [c.to_dict() for c in active],
            "recent_crises": [c.to_dict() for c in recent],
            "statistics": {
                "total_crises": len(everything),
                "active_crises": sum(1 for c in everything if c.status in ACTIVE_CRISIS_STATUSES),
                "resolved_crises": len(resolved),
                "average_response_time": average_minutes(response_times),
                "average_resolution_time": average_minutes(resolution_times),
                "critical_crises": sum(1 for c in everything if c.severity == CrisisSeverity.CRITICAL),
            },
            "trends": {
                "crisis_frequency": [{"date": d, "count": frequency[d]} for d in sorted(frequency)],
                "severity_distribution": dict(Counter(c.severity.value for c in everything)),
                "type_distribution": dict(Counter(c.type.value for c in everything)),
            },
        }

    def get_crisis_history(
        self,
        workspace_id: str,
        limit: int = 20,
        offset: int = 0,
        include_post_mortems: bool = False,
    ) -> Tuple[List[Crisis], int, bool]:
        if not 1 <= limit <= 100:
            raise InvalidConfig("limit must be within [1, 100]", "limit")
        if offset < 0:
            raise InvalidConfig("offset must be non-negative", "offset")
        filters = CrisisFilter(workspace_id, has_post_mortem=True if include_post_mortems else None)
        crises = self.crises.find(filters, order="recent", limit=limit, offset=offset)
        total = self.crises.count(filters)
        return crises, total, offset + len(crises) < total
