from .base import Agent, AgentResult
from .trend_tracker import TrendTracker
from .viral_detector import ViralContentDetector
from .clusterer import ConversationClusterer
from .crisis_detector import CrisisDetector
from .crisis_manager import CrisisManager
from .mock_data import MockMentionGenerator

__all__ = [
    "Agent", "AgentResult",
    "TrendTracker", "ViralContentDetector", "ConversationClusterer",
    "CrisisDetector", "CrisisManager", "MockMentionGenerator",
]
