from .completion import CompletionGate, GateDecision
from .content import ContentResolver
from .engagement import EngagementTracker
from .grading import grade_quiz
from .inflight import InFlightRegistry
from .progress import AttemptHistory, SubjectProgress
from .recommendation import RecommendationConsumer, preferred_mode
from .session import AssessmentSession, SessionState
from .topics import TopicResolver

__all__ = [
    "AssessmentSession",
    "AttemptHistory",
    "CompletionGate",
    "ContentResolver",
    "EngagementTracker",
    "GateDecision",
    "InFlightRegistry",
    "RecommendationConsumer",
    "SessionState",
    "SubjectProgress",
    "TopicResolver",
    "grade_quiz",
    "preferred_mode",
]
