from __future__ import annotations

from adaptive_tutor.data_models import Quiz, QuizAttempt


def quiz_to_markdown(quiz: Quiz, topic: str = "Quiz") -> str:
    """Convert a Quiz object to markdown for download/export."""
    title = topic
    if quiz.learning_mode is not None:
        title += f" ({quiz.learning_mode.value.title()})"
    title += f" - {len(quiz.questions)} Question{'s' if len(quiz.questions) != 1 else ''}"

    lines: list[str] = [f"# {title}", ""]

    for idx, question in enumerate(quiz.questions):
        lines.append(f"## Question {idx + 1}")
        lines.append(question.question)
        lines.append("")
        for choice_idx, choice in enumerate(question.options or []):
            prefix = chr(65 + choice_idx)
            lines.append(f"{prefix}. {choice}")
        if question.options:
            lines.append("")

        lines.append(f"**Answer: {question.correct_answer}**")
        lines.append("")

        if question.explanation:
            lines.append(f"**Explanation:** {question.explanation}")
            lines.append("")
        lines.append("---")
        lines.append("")

    return "\n".join(lines)


def format_attempt_summary(attempt: QuizAttempt) -> str:
    """Summarize a graded attempt as plain text."""
    lines: list[str] = [
        f"Quiz: {attempt.subject} / {attempt.topic} ({attempt.mode.value})",
        f"Score: {attempt.correct_answers}/{attempt.total_questions} ({attempt.score:.0f}%)",
    ]
    for response in attempt.responses:
        status = "correct" if response.is_correct else "incorrect"
        lines.append(f"- Q{response.question_id}: {status}")
    missed = [response.question_text for response in attempt.responses if not response.is_correct]
    if missed:
        lines.append("Focus areas: " + "; ".join(missed))
    return "\n".join(lines)
