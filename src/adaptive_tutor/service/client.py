"""
HTTP client for the remote tutoring service.

Wraps every endpoint the learning core consumes: topic storage, AI content,
topic and quiz generation, quiz persistence and history, mode recommendation,
learning-type completion, and the raw activity log. Responses are decoded into
the pydantic models in `adaptive_tutor.data_models`; transport and status
failures are translated into the `adaptive_tutor.errors` taxonomy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from adaptive_tutor.data_models import (
    ActivityRecord,
    ContentUnit,
    LearningMode,
    ModeRecommendation,
    Quiz,
    QuizAttempt,
    SavedQuizResult,
    Topic,
    TopicSet,
)
from adaptive_tutor.errors import (
    AuthRequired,
    Conflict,
    NotFound,
    TransientNetwork,
    TutorClientError,
    ValidationFailure,
)
from adaptive_tutor.service.auth import CredentialProvider

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class TopicSaveResult:
    """Outcome of saving a topic list; `already_exists` means another save won."""

    already_exists: bool = False
    topics: List[Topic] = field(default_factory=list)
    learning_type: Optional[LearningMode] = None
    message: str = ""


@dataclass
class LatestQuizResult:
    """Most recent persisted attempt for a subject (and optionally a topic)."""

    result: Optional[Dict[str, Any]]
    responses: List[Dict[str, Any]] = field(default_factory=list)


def _parse(model: Type[ModelT], data: Any, what: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("Malformed %s payload from service: %s", what, exc)
        raise ValidationFailure(f"Invalid {what} payload from server.") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Request failed: {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "message", "details"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return f"Request failed: {response.status_code}"


def _mode_value(mode: Optional[LearningMode | str]) -> Optional[str]:
    if mode is None:
        return None
    return LearningMode(mode).value


class ContentServiceClient:
    """Async client for the tutoring API; one instance per process."""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            base_url: Root URL of the tutoring API.
            credentials: Provider for the bearer token.
            timeout_seconds: Client-side timeout applied to every request.
            client: Pre-built httpx client (tests inject a MockTransport here).
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "ContentServiceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        token = self.credentials.get_token()
        if not token:
            raise AuthRequired("No authentication token found. Please login.")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = self._auth_headers()
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(
                method, url, params=clean_params or None, json=json, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise TransientNetwork(f"Request to {path} timed out.") from exc
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransientNetwork(
                f"Cannot connect to server at {self.base_url}. Check the server is running."
            ) from exc

        status = response.status_code
        if status >= 400:
            message = _error_message(response)
            if status in (401, 403):
                raise AuthRequired(message, status_code=status)
            if status == 404:
                raise NotFound(message, status_code=status)
            if status == 409:
                raise Conflict(message, status_code=status)
            if status >= 500:
                raise TransientNetwork(message, status_code=status)
            raise TutorClientError(message, status_code=status)

        if status == 204 or not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise ValidationFailure(f"Non-JSON response from {path}.", status_code=status) from exc
        if not isinstance(body, dict):
            raise ValidationFailure(f"Unexpected response shape from {path}.", status_code=status)
        return body

    # Topics

    async def get_topics(
        self, subject: str, mode: Optional[LearningMode] = None
    ) -> Optional[TopicSet]:
        """Fetch the learner's own (or, given a mode, a shared) topic list; None when absent."""
        try:
            data = await self._request(
                "GET", "/api/topics", params={"subject": subject, "learningType": _mode_value(mode)}
            )
        except NotFound:
            return None
        raw_topics = data.get("topics") or []
        if not raw_topics:
            return None
        learning_type = data.get("learningType") or _mode_value(mode) or raw_topics[0].get("learningType")
        return _parse(
            TopicSet,
            {
                "subject": subject,
                "topics": raw_topics,
                "learningType": learning_type,
                "isShared": bool(data.get("isShared", False)),
                "generatedAt": data.get("generatedAt"),
            },
            "topics",
        )

    async def save_topics(
        self, subject: str, topics: Sequence[Topic], mode: LearningMode
    ) -> TopicSaveResult:
        """Persist a topic list; a set saved first by another session is reported back."""
        data = await self._request(
            "POST",
            "/api/topics",
            json={
                "subject": subject,
                "topics": [topic.to_wire() for topic in topics],
                "learningType": _mode_value(mode),
            },
        )
        existing = [_parse(Topic, item, "topic") for item in data.get("topics") or []]
        learning_type = data.get("learningType")
        return TopicSaveResult(
            already_exists=bool(data.get("alreadyExists", False)),
            topics=existing,
            learning_type=LearningMode(learning_type) if learning_type else None,
            message=str(data.get("message") or ""),
        )

    async def delete_topics(self, subject: str) -> None:
        await self._request("DELETE", "/api/topics", params={"subject": subject})

    async def generate_topics(
        self, subject: str, mode: LearningMode, count: int = 10
    ) -> List[Topic]:
        """Ask the service to generate `count` fresh topics for a subject and mode."""
        data = await self._request(
            "POST",
            "/api/ai/generate-topics",
            json={"subject": subject, "learningType": _mode_value(mode), "numTopics": count},
        )
        topics: List[Topic] = []
        for index, item in enumerate(data.get("topics") or []):
            if not isinstance(item, dict):
                raise ValidationFailure("Invalid topic entry from server.")
            payload = dict(item)
            payload.setdefault("learningType", _mode_value(mode))
            payload.setdefault("id", f"{subject.lower().strip()}-{_mode_value(mode)}-{index + 1}")
            topics.append(_parse(Topic, payload, "topic"))
        if not topics:
            raise ValidationFailure("Topic generation returned no topics.")
        return topics

    # Content and quizzes

    async def generate_content(
        self,
        subject: str,
        topic: str,
        mode: LearningMode,
        difficulty: str = "medium",
    ) -> ContentUnit:
        data = await self._request(
            "POST",
            "/api/ai/generate-content-for-mode",
            json={
                "subject": subject,
                "topic": topic,
                "learningMode": _mode_value(mode),
                "difficulty": difficulty,
            },
        )
        content = data.get("content")
        if not isinstance(content, dict):
            logger.error("Content response missing 'content': %s", list(data))
            raise ValidationFailure("Invalid response from server: content not found")
        payload = dict(content)
        payload.setdefault("learningMode", _mode_value(mode))
        return _parse(ContentUnit, payload, "content")

    async def generate_quiz(
        self,
        subject: str,
        topic: str,
        mode: Optional[LearningMode],
        difficulty: str = "medium",
        num_questions: int = 5,
        content: Optional[str] = None,
    ) -> Quiz:
        """Generate a quiz; `content` grounds the questions in the material shown."""
        body: Dict[str, Any] = {
            "subject": subject,
            "topic": topic,
            "learningMode": _mode_value(mode),
            "difficulty": difficulty,
            "numQuestions": num_questions,
        }
        if content:
            body["content"] = content
        data = await self._request("POST", "/api/ai/generate-quiz", json=body)
        quiz = data.get("quiz")
        if not isinstance(quiz, dict):
            raise ValidationFailure("Invalid response from server: quiz not found")
        payload = dict(quiz)
        payload.setdefault("learningMode", data.get("learningMode") or _mode_value(mode))
        return _parse(Quiz, payload, "quiz")

    async def save_quiz(self, attempt: QuizAttempt) -> SavedQuizResult:
        data = await self._request("POST", "/api/quiz/save", json=attempt.to_save_payload())
        result = data.get("quizResult") or data.get("quizAttempt") or {}
        return _parse(SavedQuizResult, result, "quiz result")

    async def latest_quiz_result(
        self, subject: str, topic: Optional[str] = None
    ) -> LatestQuizResult:
        data = await self._request(
            "GET", "/api/quiz/latest", params={"subject": subject, "topic": topic}
        )
        return LatestQuizResult(result=data.get("result"), responses=list(data.get("responses") or []))

    async def quiz_history(self, subject: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET", "/api/quiz/history", params={"limit": limit, "subject": subject}
        )
        return list(data.get("results") or data.get("attempts") or [])

    # Recommendation, completion, activity

    async def recommend_mode(self, subject: Optional[str] = None) -> ModeRecommendation:
        data = await self._request("GET", "/api/ml/recommend-mode", params={"subject": subject})
        recommendation = data.get("recommendation")
        if not isinstance(recommendation, dict):
            raise ValidationFailure("Invalid response from server: recommendation not found")
        return _parse(ModeRecommendation, recommendation, "recommendation")

    async def check_learning_types(self, subject: str) -> Dict[str, Any]:
        return await self._request(
            "GET", "/api/learning-types/check", params={"subject": subject}
        )

    async def log_activity(self, record: ActivityRecord) -> Dict[str, Any]:
        return await self._request("POST", "/activity", json=record.to_payload())
