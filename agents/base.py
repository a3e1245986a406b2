"""
Base Agent class
Social Listening Signal Engine
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Dict
from dataclasses import dataclass, field
from datetime import datetime
import logging
import traceback

from config.settings import settings
from db.repositories import MentionRepository
from models.schemas import Mention, TimeRange, WorkspaceJob
from utils.timing import utcnow, call_with_timeout

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class AgentResult:
    """Standardized result envelope returned by every agent."""
    agent_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    workspace_id: Optional[str] = None
    job_kind: Optional[str] = None
    skipped: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def __repr__(self):
        status = "⏭️" if self.skipped else ("✅" if self.success else "❌")
        dur = f" ({self.duration_seconds:.1f}s)" if self.duration_seconds else ""
        where = f" [{self.workspace_id}]" if self.workspace_id else ""
        return f"{status} {self.agent_name}{where}{dur}"


class Agent(ABC):
    """
    Abstract base class for the per-workspace analysis agents.
    Subclasses implement `run(job)`; callers that must not raise (the
    scheduler) go through `execute(job)`.
    """

    job_kind: str = ""

    def __init__(
        self,
        name: str,
        mentions: MentionRepository,
        clock: Optional[Clock] = None,
        repository_timeout: Optional[float] = None,
    ):
        self.name = name
        self.mentions = mentions
        self.clock = clock or utcnow
        self.repository_timeout = (
            settings.REPOSITORY_TIMEOUT_SECONDS if repository_timeout is None else repository_timeout
        )
        self.logger = logging.getLogger(f"agent.{name}")

    @abstractmethod
    def run(self, job: WorkspaceJob) -> Any:
        raise NotImplementedError

    def fetch_mentions(
        self,
        workspace_id: str,
        time_range: TimeRange,
        platforms: Optional[List[str]] = None,
        contains: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[Mention]:
        """Query the mention source, bounded by the repository timeout."""
        return call_with_timeout(
            self.mentions.query,
            self.repository_timeout or None,
            workspace_id,
            time_range,
            platforms=platforms,
            contains=contains,
            newest_first=newest_first,
            label=f"{self.name}.mentions.query",
        )

    def execute(self, job: WorkspaceJob) -> AgentResult:
        """
        Wraps `run()` with timing, structured logging, and error handling.
        """
        started_at = utcnow()
        self.logger.info(f"[{self.name}] Starting for workspace {job.workspace_id}...")
        try:
            result = self.run(job)
            finished_at = utcnow()
            duration = (finished_at - started_at).total_seconds()
            self.logger.info(f"[{self.name}] Completed for workspace {job.workspace_id} in {duration:.2f}s")
            return AgentResult(
                agent_name=self.name,
                success=True,
                data=result,
                workspace_id=job.workspace_id,
                job_kind=self.job_kind,
                started_at=started_at,
                finished_at=finished_at,
            )
        except Exception as e:
            finished_at = utcnow()
            self.logger.error(
                f"[{self.name}] Failed for workspace {job.workspace_id} "
                f"(job={self.job_kind}): {e}\n{traceback.format_exc()}"
            )
            return AgentResult(
                agent_name=self.name,
                success=False,
                error=str(e),
                error_code=getattr(e, "error_code", None),
                workspace_id=job.workspace_id,
                job_kind=self.job_kind,
                started_at=started_at,
                finished_at=finished_at,
            )

    def __repr__(self):
        return f"<Agent: {self.name}>"
