"""
Quiz grading service

Correctness always comes from the stored answer options; anything the
client claims about correctness is ignored.
"""
import logging
from typing import Dict, Any, List, Optional, Tuple
from uuid import UUID

from app.exceptions import InvalidError
from app.models import Question

logger = logging.getLogger(__name__)


class GradingService:
    """
    Service for grading attempt submissions

    Strategy:
    - One graded entry per question of the graded set, in its order
    - Unanswered questions are recorded with no selection and is_correct = False
    - Score is the rounded percentage of correct answers
    """

    def validate_selection(
        self,
        questions_by_id: Dict[UUID, Question],
        question_id: UUID,
        selected_answer_id: UUID
    ) -> Question:
        """
        Check that a selection refers to a question of the quiz and to one of
        that question's options

        Raises:
            InvalidError: if either reference is foreign
        """
        question = questions_by_id.get(question_id)
        if question is None:
            raise InvalidError(
                f"Question {question_id} not found in quiz",
                error="question_not_in_quiz",
            )

        if not any(option.id == selected_answer_id for option in question.options):
            raise InvalidError(
                "Answer does not belong to the specified question",
                error="answer_not_in_question",
            )

        return question

    def grade(
        self,
        questions: List[Question],
        selections: Dict[UUID, Optional[UUID]],
        question_ids: Optional[List[UUID]] = None
    ) -> Tuple[int, int, List[Dict[str, Any]]]:
        """
        Grade a complete set of selections

        Args:
            questions: Quiz questions with their options loaded
            selections: {question_id: selected_answer_id or None}
            question_ids: The graded question set, in order. Ids missing from
                questions (deleted since) are graded as unanswered. Defaults
                to the ids of questions.

        Returns:
            Tuple of (correct_answers, score_percentage, graded_answers)
        """
        questions_by_id = {q.id: q for q in questions}
        if question_ids is None:
            question_ids = [q.id for q in questions]
        for question_id, selected_answer_id in selections.items():
            if selected_answer_id is not None:
                self.validate_selection(questions_by_id, question_id, selected_answer_id)

        graded = []
        correct = 0

        for question_id in question_ids:
            question = questions_by_id.get(question_id)
            selected_answer_id = selections.get(question_id) if question is not None else None
            is_correct = False

            if selected_answer_id is not None:
                option = next(o for o in question.options if o.id == selected_answer_id)
                is_correct = bool(option.is_correct)

            if is_correct:
                correct += 1

            graded.append({
                "question_id": str(question_id),
                "selected_answer_id": str(selected_answer_id) if selected_answer_id else None,
                "is_correct": is_correct,
            })

        score = self.score_percentage(correct, len(question_ids))

        logger.info(f"Graded {len(question_ids)} questions: {correct} correct, score {score}%")

        return correct, score, graded

    @staticmethod
    def score_percentage(correct: int, total: int) -> int:
        if total <= 0:
            return 0
        return round(correct / total * 100)


# Global instance
grading_service = GradingService()
