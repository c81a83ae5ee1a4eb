from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Difficulty = Literal["easy", "medium", "hard"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LearningMode(str, Enum):
    """Content delivery style a learner studies in."""

    VISUAL = "visual"
    AUDIO = "audio"
    TEXT = "text"

    def __str__(self) -> str:
        return self.value


ALL_MODES = (LearningMode.VISUAL, LearningMode.AUDIO, LearningMode.TEXT)
DEFAULT_MODE = LearningMode.TEXT


class WireModel(BaseModel):
    """Base for payloads exchanged with the service in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump using the service's field names and JSON-compatible values."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class VisualElement(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = ""
    description: str = ""
    content: str = ""
    color_scheme: Optional[str] = None
    image_url: Optional[str] = None
    image_prompt: Optional[str] = None


class AudioSection(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    section: str = ""
    audio_script: str = ""
    key_points: List[str] = Field(default_factory=list)
    verbal_mnemonic: Optional[str] = None


class TextSection(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    heading: str = ""
    content: str = ""
    key_concepts: List[str] = Field(default_factory=list)
    examples: List[Dict[str, Any]] = Field(default_factory=list)


class RelatedVideoLink(WireModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    title: str = ""
    url: str
    description: str = ""


class ContentUnit(WireModel):
    """
    Generated study material for one (subject, topic, mode) triple.

    The payload shape depends on the mode: visual units carry visual elements,
    step guides and mnemonics, audio units carry scripted sections and audio file
    links, text units carry written sections and case studies. Units are never
    patched; regenerating produces a new unit. Fields the service adds beyond the
    known ones are preserved.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    title: str = ""
    learning_mode: LearningMode
    ml_confidence: Optional[float] = None
    ml_reasoning: Optional[str] = None
    # visual
    visual_elements: List[VisualElement] = Field(default_factory=list)
    step_by_step_guide: List[Dict[str, Any]] = Field(default_factory=list)
    visual_mnemonics: List[Dict[str, Any]] = Field(default_factory=list)
    # audio
    audio_introduction: Optional[str] = None
    main_content: List[AudioSection] = Field(default_factory=list)
    discussion_questions: List[Dict[str, Any]] = Field(default_factory=list)
    audio_summary: Optional[str] = None
    audio_files: Optional[Dict[str, Any]] = None
    # text
    sections: List[TextSection] = Field(default_factory=list)
    case_studies: List[Dict[str, Any]] = Field(default_factory=list)
    # common
    practice_problems: List[Dict[str, Any]] = Field(default_factory=list)
    summary: Optional[str] = None
    video_url: Optional[str] = None
    related_video_links: List[RelatedVideoLink] = Field(default_factory=list)

    def grounding_text(self) -> str:
        """Flatten the unit into plain text for grounding quiz generation."""
        parts: List[str] = []
        if self.title:
            parts.append(self.title)
        for element in self.visual_elements:
            parts.extend(filter(None, [element.description, element.content]))
        for step in self.step_by_step_guide:
            parts.append(str(step.get("explanation") or step.get("visualDescription") or ""))
        if self.audio_introduction:
            parts.append(self.audio_introduction)
        for audio_section in self.main_content:
            parts.extend(filter(None, [audio_section.section, audio_section.audio_script]))
            parts.extend(audio_section.key_points)
        if self.audio_summary:
            parts.append(self.audio_summary)
        for text_section in self.sections:
            parts.extend(filter(None, [text_section.heading, text_section.content]))
            parts.extend(text_section.key_concepts)
        for case in self.case_studies:
            parts.append(str(case.get("description") or ""))
        if self.summary:
            parts.append(self.summary)
        return "\n".join(part.strip() for part in parts if part and part.strip())


class Topic(WireModel):
    """A study topic belonging to a subject, tagged with the mode it was produced for."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    learning_type: LearningMode
    difficulty: Optional[Difficulty] = None
    created_at: datetime = Field(default_factory=_utcnow)


class TopicSet(WireModel):
    """Resolved topic list for a subject, with provenance."""

    subject: str
    topics: List[Topic]
    learning_type: LearningMode
    is_shared: bool = False
    generated_at: Optional[datetime] = None


class QuizQuestion(WireModel):
    """Single generated quiz item with its answer key."""

    id: int
    question: str
    type: str = "multiple_choice"
    options: Optional[List[str]] = None
    correct_answer: str
    explanation: str = ""
    hint: str = ""
    points: int = 1


class Quiz(WireModel):
    """Quiz returned by the generation endpoint."""

    questions: List[QuizQuestion]
    total_points: int = 0
    learning_mode: Optional[LearningMode] = None

    @field_validator("questions")
    @classmethod
    def validate_questions(cls, value: List[QuizQuestion]) -> List[QuizQuestion]:
        if not value:
            raise ValueError("quiz must include at least one question")
        return value


class QuestionResponse(BaseModel):
    """Learner's answer to one question, as stored with the attempt."""

    model_config = ConfigDict(frozen=True)

    question_id: int
    question_text: str
    question_type: str = "multiple_choice"
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool
    explanation: Optional[str] = None


class EngagementSignals(BaseModel):
    """Exposure measurements gathered while the learner studied."""

    model_config = ConfigDict(frozen=True)

    reading_time_seconds: int = Field(0, ge=0)
    audio_play_count: int = Field(0, ge=0)


class QuizEvaluation(BaseModel):
    """Outcome of grading one submission."""

    model_config = ConfigDict(frozen=True)

    total_questions: int
    correct_count: int
    score: float = Field(ge=0, le=100)
    excels: bool
    responses: List[QuestionResponse]


class QuizAttempt(BaseModel):
    """A submitted, graded quiz together with the session's engagement signals."""

    model_config = ConfigDict(frozen=True)

    subject: str
    topic: str
    mode: LearningMode
    difficulty: Difficulty = "medium"
    total_questions: int
    correct_answers: int
    score: float = Field(ge=0, le=100)
    responses: List[QuestionResponse]
    engagement: EngagementSignals = Field(default_factory=EngagementSignals)
    time_taken: Optional[int] = None
    completed_at: datetime = Field(default_factory=_utcnow)

    def to_save_payload(self) -> Dict[str, Any]:
        """Request body for the quiz save endpoint."""
        return {
            "subject": self.subject,
            "topic": self.topic,
            "learningType": self.mode.value,
            "difficulty": self.difficulty,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "score": self.score,
            "timeTaken": self.time_taken,
            "readingTimeSeconds": self.engagement.reading_time_seconds,
            "audioPlayCount": self.engagement.audio_play_count,
            "responses": [response.model_dump() for response in self.responses],
        }


class SavedQuizResult(WireModel):
    """Server echo of a persisted attempt."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    subject: Optional[str] = None
    topic: Optional[str] = None
    learning_type: Optional[LearningMode] = None
    score: Optional[float] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    completed_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class ModeStats(WireModel):
    """Per-mode aggregates the recommender computed from the attempt history."""

    total_sessions: int = 0
    total_score: float = 0.0
    avg_focus: float = 0.0


class ModeRecommendation(WireModel):
    """Server-computed guidance on which mode the learner should use next."""

    recommended_mode: LearningMode
    best_performing_mode: Optional[LearningMode] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    mode_stats: Dict[LearningMode, ModeStats] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("modeStats", "perModeStats", "mode_stats"),
    )


class CompletionStatus(BaseModel):
    """Whether a learner has been assessed in every mode of a subject."""

    model_config = ConfigDict(frozen=True)

    completed: bool
    all_scores_zero: bool = False
    completed_modes: List[LearningMode] = Field(default_factory=list)
    mode_scores: Dict[LearningMode, float] = Field(default_factory=dict)

    @property
    def missing_modes(self) -> List[LearningMode]:
        return [mode for mode in ALL_MODES if mode not in self.completed_modes]


class ActivityRecord(BaseModel):
    """Raw engagement entry logged before a quiz is generated."""

    subject: str
    activity_type: LearningMode
    reading_time: int = 0
    playback_time: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
