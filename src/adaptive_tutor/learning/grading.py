from __future__ import annotations

from typing import List, Mapping, Optional

from adaptive_tutor.data_models import QuestionResponse, Quiz, QuizEvaluation

EXCELS_THRESHOLD = 80.0


def excels(score: float, threshold: float = EXCELS_THRESHOLD) -> bool:
    return score >= threshold


def grade_quiz(
    quiz: Quiz,
    answers: Mapping[int, str],
    excels_threshold: float = EXCELS_THRESHOLD,
) -> QuizEvaluation:
    """
    Grade a submission against the quiz's answer key.

    `answers` maps question ids to the learner's answer. A question is correct
    only when the answer equals the key exactly (case and whitespace included);
    unanswered questions count as incorrect. The score is the percentage of
    correct answers and is not rounded.
    """
    responses: List[QuestionResponse] = []
    correct = 0

    for question in quiz.questions:
        selected: Optional[str] = answers.get(question.id)
        is_correct = selected is not None and selected == question.correct_answer
        if is_correct:
            correct += 1
        responses.append(
            QuestionResponse(
                question_id=question.id,
                question_text=question.question,
                question_type=question.type,
                user_answer=selected,
                correct_answer=question.correct_answer,
                is_correct=is_correct,
                explanation=question.explanation or None,
            )
        )

    total = len(quiz.questions)
    score = 100.0 * correct / total if total else 0.0

    return QuizEvaluation(
        total_questions=total,
        correct_count=correct,
        score=score,
        excels=excels(score, excels_threshold),
        responses=responses,
    )
