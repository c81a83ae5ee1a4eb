from .learning import (
    ALL_MODES,
    DEFAULT_MODE,
    ActivityRecord,
    AudioSection,
    CompletionStatus,
    ContentUnit,
    Difficulty,
    EngagementSignals,
    LearningMode,
    ModeRecommendation,
    ModeStats,
    QuestionResponse,
    Quiz,
    QuizAttempt,
    QuizEvaluation,
    QuizQuestion,
    RelatedVideoLink,
    SavedQuizResult,
    TextSection,
    Topic,
    TopicSet,
    VisualElement,
)

__all__ = [
    "ALL_MODES",
    "DEFAULT_MODE",
    "ActivityRecord",
    "AudioSection",
    "CompletionStatus",
    "ContentUnit",
    "Difficulty",
    "EngagementSignals",
    "LearningMode",
    "ModeRecommendation",
    "ModeStats",
    "QuestionResponse",
    "Quiz",
    "QuizAttempt",
    "QuizEvaluation",
    "QuizQuestion",
    "RelatedVideoLink",
    "SavedQuizResult",
    "TextSection",
    "Topic",
    "TopicSet",
    "VisualElement",
]
