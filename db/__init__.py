from .database import make_engine, make_session_factory, init_db, get_db
from .models import Base, MentionRow, TrendRow, ClusterRow, CrisisRow
from .repositories import (
    MentionRepository, TrendRepository, ClusterRepository, CrisisRepository,
    SqlMentionRepository, SqlTrendRepository, SqlClusterRepository, SqlCrisisRepository,
)

__all__ = [
    "make_engine", "make_session_factory", "init_db", "get_db",
    "Base", "MentionRow", "TrendRow", "ClusterRow", "CrisisRow",
    "MentionRepository", "TrendRepository", "ClusterRepository", "CrisisRepository",
    "SqlMentionRepository", "SqlTrendRepository", "SqlClusterRepository", "SqlCrisisRepository",
]
