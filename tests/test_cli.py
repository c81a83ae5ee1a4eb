"""Tests for the quiz export command."""

from __future__ import annotations

import json

import httpx
import pytest
from typer.testing import CliRunner

from adaptive_tutor import cli
from adaptive_tutor.config import CacheConfig, Settings
from adaptive_tutor.service import StaticCredentialProvider
from adaptive_tutor.system import LearningSystem

QUIZ_RESPONSE = {
    "quiz": {
        "questions": [
            {"id": 1, "question": "What is x if x + 1 = 3?", "correctAnswer": "2", "options": ["1", "2", "3"]},
            {"id": 2, "question": "Is 0 even?", "correctAnswer": "True", "options": ["True", "False"]},
        ],
        "totalPoints": 2,
    },
    "learningMode": "text",
}

runner = CliRunner()


class FakeApi:
    """Serves content and quizzes, recording each request path and body."""

    def __init__(self) -> None:
        self.requests = []
        self.content_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.url.path, json.loads(request.content)))
        if request.url.path.endswith("/generate-content-for-mode"):
            if self.content_status != 200:
                return httpx.Response(self.content_status, json={"message": "unavailable"})
            return httpx.Response(200, json={"content": {"title": "Linear equations", "summary": "Solve for x."}})
        return httpx.Response(200, json=QUIZ_RESPONSE)

    def body_for(self, suffix: str) -> dict:
        return next(body for path, body in self.requests if path.endswith(suffix))


@pytest.fixture
def api(monkeypatch):
    fake = FakeApi()

    def load_system(config, token):
        return LearningSystem(
            Settings(cache=CacheConfig(backend="memory")),
            credentials=StaticCredentialProvider("secret-token"),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake)),
        )

    monkeypatch.setattr(cli, "_load_system", load_system)
    return fake


def test_quiz_command_writes_markdown_file(api, tmp_path):
    output = tmp_path / "exports" / "algebra.md"

    result = runner.invoke(cli.app, ["quiz", "math", "algebra", "--output", str(output)])

    assert result.exit_code == 0, result.output
    markdown = output.read_text(encoding="utf-8")
    assert markdown.startswith("# algebra (Text) - 2 Questions")
    assert "B. 2" in markdown
    assert "**Answer: True**" in markdown
    assert api.body_for("/generate-quiz")["content"] == "Linear equations\nSolve for x."


def test_quiz_command_prints_without_output(api):
    result = runner.invoke(cli.app, ["quiz", "math", "algebra", "--mode", "audio"])

    assert result.exit_code == 0, result.output
    assert "## Question 2" in result.output
    assert api.body_for("/generate-quiz")["learningMode"] == "audio"


def test_quiz_is_generated_without_material_when_content_fails(api, tmp_path):
    api.content_status = 503
    output = tmp_path / "algebra.md"

    result = runner.invoke(cli.app, ["quiz", "math", "algebra", "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert "content" not in api.body_for("/generate-quiz")
    assert "## Question 1" in output.read_text(encoding="utf-8")
