"""
Schedule Driver: invokes the per-workspace agents on fixed periods.

  trends          hourly
  crisis          every 5 minutes (auto-alerts on detection)
  clusters        every 6 hours
  trend_cleanup   daily, global

Workspaces run in parallel up to MAX_CONCURRENT_WORKSPACES. Runs for the
same (workspace, job kind) never overlap: a trigger that finds the previous
run still executing is skipped, not queued. Each workspace run has its own
timeout; a timeout or failure is reported for that workspace only.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from agents.base import AgentResult
from config.settings import settings
from models.schemas import (
    AlertChannel, ClusterOptions, CrisisConfig, WorkspaceConfig, WorkspaceJob,
)
from utils.engine import SignalEngine
from utils.timing import utcnow

logger = logging.getLogger(__name__)

JOB_TRENDS = "trends"
JOB_CRISIS = "crisis"
JOB_CLUSTERS = "clusters"
JOB_CLEANUP = "trend_cleanup"

GLOBAL_SCOPE = "*"


class RunLockRegistry:
    """Non-blocking run locks keyed by (workspace_id, job_kind)."""

    def __init__(self):
        self._running: set = set()
        self._guard = threading.Lock()

    def try_acquire(self, workspace_id: str, job_kind: str) -> bool:
        key = (workspace_id, job_kind)
        with self._guard:
            if key in self._running:
                return False
            self._running.add(key)
            return True

    def release(self, workspace_id: str, job_kind: str) -> None:
        with self._guard:
            self._running.discard((workspace_id, job_kind))

    def is_running(self, workspace_id: str, job_kind: str) -> bool:
        with self._guard:
            return (workspace_id, job_kind) in self._running


@dataclass
class ScheduledJob:
    kind: str
    interval: timedelta
    next_run_at: Optional[datetime] = None


def default_workspace_config(workspace_id: str) -> WorkspaceConfig:
    return WorkspaceConfig(
        workspace_id=workspace_id,
        crisis_config=CrisisConfig(
            sentiment_threshold=settings.CRISIS_SENTIMENT_THRESHOLD,
            volume_threshold=settings.CRISIS_VOLUME_THRESHOLD,
            time_window=settings.CRISIS_TIME_WINDOW_MINUTES,
            min_mentions=settings.CRISIS_MIN_MENTIONS,
        ),
    )


class ScheduleDriver:

    def __init__(
        self,
        engine: SignalEngine,
        workspaces: Optional[List[WorkspaceConfig]] = None,
        max_concurrent: Optional[int] = None,
        job_timeout: Optional[float] = None,
        clock=None,
    ):
        self.engine = engine
        self.workspaces = workspaces
        self.max_concurrent = max_concurrent or settings.MAX_CONCURRENT_WORKSPACES
        self.job_timeout = settings.WORKSPACE_JOB_TIMEOUT_SECONDS if job_timeout is None else job_timeout
        self.clock = clock or utcnow
        self.locks = RunLockRegistry()
        self.jobs: List[ScheduledJob] = [
            ScheduledJob(JOB_TRENDS, timedelta(seconds=settings.TREND_INTERVAL_SECONDS)),
            ScheduledJob(JOB_CRISIS, timedelta(seconds=settings.CRISIS_INTERVAL_SECONDS)),
            ScheduledJob(JOB_CLUSTERS, timedelta(seconds=settings.CLUSTER_INTERVAL_SECONDS)),
            ScheduledJob(JOB_CLEANUP, timedelta(seconds=settings.CLEANUP_INTERVAL_SECONDS)),
        ]
        self._handlers: Dict[str, Callable[[WorkspaceConfig], AgentResult]] = {
            JOB_TRENDS: self._run_trends,
            JOB_CRISIS: self._run_crisis,
            JOB_CLUSTERS: self._run_clusters,
        }

    # ── Driving ─────────────────────────────────────────────────────────────

    def tick(self, now: Optional[datetime] = None) -> Dict[str, List[AgentResult]]:
        """Run every job that is due at `now`; returns results by job kind."""
        now = now or self.clock()
        ran: Dict[str, List[AgentResult]] = {}
        for job in self.jobs:
            if job.next_run_at is not None and now < job.next_run_at:
                continue
            job.next_run_at = now + job.interval
            if job.kind == JOB_CLEANUP:
                ran[job.kind] = [self.run_cleanup()]
            else:
                ran[job.kind] = self.run_job(job.kind)
        return ran

    def run_forever(self, stop_event: threading.Event, poll_seconds: float = 5.0) -> None:
        logger.info(f"🗓️  Scheduler started ({len(self.jobs)} jobs, {self.max_concurrent} workers)")
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.exception(f"Scheduler tick failed: {e}")
            stop_event.wait(poll_seconds)
        logger.info("🗓️  Scheduler stopped")

    # ── Per-workspace fan-out ───────────────────────────────────────────────

    def workspace_configs(self) -> List[WorkspaceConfig]:
        if self.workspaces is not None:
            return list(self.workspaces)
        return [default_workspace_config(ws) for ws in self.engine.mentions.list_workspace_ids()]

    def run_job(self, kind: str, workspaces: Optional[List[WorkspaceConfig]] = None) -> List[AgentResult]:
        if kind not in self._handlers:
            raise ValueError(f"Unknown job kind: {kind}")
        configs = self.workspace_configs() if workspaces is None else workspaces
        if not configs:
            return []

        with ThreadPoolExecutor(max_workers=self.max_concurrent, thread_name_prefix=f"sched-{kind}") as pool:
            futures = [pool.submit(self.run_workspace, kind, cfg) for cfg in configs]
            results = [f.result() for f in futures]

        failed = [r for r in results if not r.success]
        skipped = [r for r in results if r.skipped]
        logger.info(
            f"Job '{kind}': {len(results) - len(failed) - len(skipped)} ok, "
            f"{len(failed)} failed, {len(skipped)} skipped"
        )
        return results

    def run_workspace(self, kind: str, cfg: WorkspaceConfig) -> AgentResult:
        """
        One guarded run: skipped if the same (workspace, kind) is still
        executing, abandoned with a failure result after `job_timeout`.
        The run lock is held until the work itself finishes.
        """
        return self._guarded(cfg.workspace_id, kind, lambda: self._handlers[kind](cfg))

    def run_cleanup(self) -> AgentResult:
        def cleanup() -> AgentResult:
            started = utcnow()
            try:
                data = self.engine.trend_tracker.cleanup_stale_trends()
                return AgentResult(
                    agent_name="TrendCleanup", success=True, data=data,
                    workspace_id=GLOBAL_SCOPE, job_kind=JOB_CLEANUP,
                    started_at=started, finished_at=utcnow(),
                )
            except Exception as e:
                logger.exception(f"Trend cleanup failed: {e}")
                return AgentResult(
                    agent_name="TrendCleanup", success=False, error=str(e),
                    error_code=getattr(e, "error_code", None),
                    workspace_id=GLOBAL_SCOPE, job_kind=JOB_CLEANUP,
                    started_at=started, finished_at=utcnow(),
                )

        return self._guarded(GLOBAL_SCOPE, JOB_CLEANUP, cleanup)

    def _guarded(self, workspace_id: str, kind: str, work: Callable[[], AgentResult]) -> AgentResult:
        if not self.locks.try_acquire(workspace_id, kind):
            logger.warning(f"⏭️  Skipping '{kind}' for {workspace_id}: previous run still in progress")
            return AgentResult(
                agent_name=kind, success=True, skipped=True,
                workspace_id=workspace_id, job_kind=kind,
            )

        started = utcnow()
        runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{kind}-{workspace_id}")
        try:
            future = runner.submit(work)
        except Exception:
            self.locks.release(workspace_id, kind)
            runner.shutdown(wait=False)
            raise
        future.add_done_callback(lambda _: self.locks.release(workspace_id, kind))
        runner.shutdown(wait=False)

        try:
            return future.result(timeout=self.job_timeout or None)
        except FuturesTimeoutError:
            logger.error(
                f"⏱️  '{kind}' for workspace {workspace_id} timed out after {self.job_timeout:.1f}s"
            )
            return AgentResult(
                agent_name=kind, success=False,
                error=f"timed out after {self.job_timeout:.1f}s", error_code="job_timeout",
                workspace_id=workspace_id, job_kind=kind,
                started_at=started, finished_at=utcnow(),
            )
        except Exception as e:
            logger.exception(f"'{kind}' for workspace {workspace_id} failed: {e}")
            return AgentResult(
                agent_name=kind, success=False, error=str(e),
                error_code=getattr(e, "error_code", None),
                workspace_id=workspace_id, job_kind=kind,
                started_at=started, finished_at=utcnow(),
            )

    # ── Job bodies ──────────────────────────────────────────────────────────

    def _run_trends(self, cfg: WorkspaceConfig) -> AgentResult:
        return self.engine.trend_tracker.execute(WorkspaceJob(cfg.workspace_id))

    def _run_clusters(self, cfg: WorkspaceConfig) -> AgentResult:
        options = ClusterOptions(
            min_size=settings.CLUSTER_MIN_SIZE,
            min_cohesion=settings.CLUSTER_MIN_COHESION,
            days=settings.CLUSTER_DAYS,
            limit=settings.SCHEDULED_CLUSTER_LIMIT,
        )
        return self.engine.clusterer.execute(WorkspaceJob(cfg.workspace_id, options))

    def _run_crisis(self, cfg: WorkspaceConfig) -> AgentResult:
        result = self.engine.crisis_detector.execute(WorkspaceJob(cfg.workspace_id, cfg.crisis_config))
        if not (result.success and result.data.crisis_detected and cfg.auto_alerts):
            return result

        crisis = result.data.crisis
        channels = cfg.alert_channels or [AlertChannel(c) for c in settings.CRISIS_ALERT_CHANNELS]
        try:
            sent = self.engine.crisis_manager.send_crisis_alerts(crisis.id, channels, cfg.alert_recipients)
            result.metadata["alerts"] = sent.to_dict()
            if not sent.success:
                logger.error(f"Auto-alerts for crisis {crisis.id} in {cfg.workspace_id} partially failed")
        except Exception as e:
            logger.exception(f"Auto-alerts for crisis {crisis.id} in {cfg.workspace_id} failed: {e}")
            result.metadata["alerts"] = {"success": False, "error": str(e)}
        return result


def run_once(engine: SignalEngine, kinds: Tuple[str, ...] = (JOB_TRENDS, JOB_CRISIS, JOB_CLUSTERS)) -> Dict[str, List[AgentResult]]:
    """Convenience: run the given job kinds once for every known workspace."""
    driver = ScheduleDriver(engine)
    return {kind: driver.run_job(kind) for kind in kinds}
