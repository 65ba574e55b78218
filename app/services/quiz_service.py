"""
Quiz catalog and authoring service
"""
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional
from uuid import UUID

from sqlalchemy import or_, update
from sqlalchemy.orm import Session, selectinload

from app.exceptions import ForbiddenError, InvalidError, NotFoundError, PaymentRequiredError
from app.models import AnswerOption, Question, Quiz, User
from app.schemas.quiz import QuestionCreate, QuestionUpdate, QuizCreate, QuizUpdate
from app.utils.cache import cache_service
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class QuizService:
    """
    Service for browsing and authoring quizzes

    Visibility rules:
    - Hidden quizzes exist only for their owner and admins
    - Premium quizzes are listed for everyone but can only be taken with an
      active entitlement
    """

    # ------------------------------------------------------------------
    # Access checks
    # ------------------------------------------------------------------

    def get_visible_quiz(self, db: Session, quiz_id: UUID, user: Optional[User]) -> Quiz:
        """
        Raises:
            NotFoundError: quiz missing, or hidden and user is neither owner nor admin
        """
        quiz = db.get(Quiz, quiz_id)
        if quiz is None or not quiz.is_visible_to(user):
            raise NotFoundError("Quiz not found", error="quiz_not_found")
        return quiz

    def ensure_entitled(self, quiz: Quiz, user: User, now: Optional[datetime] = None) -> None:
        """
        Raises:
            PaymentRequiredError: premium quiz and user has no active entitlement
        """
        if not quiz.is_premium or quiz.owner_id == user.id:
            return
        if not user.has_premium(now or utcnow()):
            raise PaymentRequiredError()

    def ensure_can_manage(self, quiz: Quiz, user: User) -> None:
        if not (user.is_admin or quiz.owner_id == user.id):
            raise ForbiddenError("You do not have permission to modify this quiz")

    def ensure_can_author(self, user: User, now: Optional[datetime] = None) -> None:
        """Publishing premium quizzes and importing from files are premium features"""
        if not user.has_premium(now or utcnow()):
            raise PaymentRequiredError(
                "A premium subscription is required for this authoring feature",
                error="premium_required",
            )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_quizzes(
        self,
        db: Session,
        user: Optional[User],
        search: Optional[str] = None,
        is_premium: Optional[bool] = None,
        owner_id: Optional[UUID] = None,
        accessible_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Quiz]:
        """
        Browse quizzes

        Args:
            search: case-insensitive title substring
            is_premium: filter on the premium flag
            owner_id: only quizzes authored by this user
            accessible_only: drop premium quizzes the user cannot take
        """
        query = db.query(Quiz)

        if user is None:
            query = query.filter(Quiz.is_hidden.is_(False))
        elif not user.is_admin:
            query = query.filter(or_(Quiz.is_hidden.is_(False), Quiz.owner_id == user.id))

        if search:
            query = query.filter(Quiz.title.ilike(f"%{search}%"))
        if is_premium is not None:
            query = query.filter(Quiz.is_premium.is_(is_premium))
        if owner_id is not None:
            query = query.filter(Quiz.owner_id == owner_id)
        if accessible_only:
            if user is None:
                query = query.filter(Quiz.is_premium.is_(False))
            elif not user.has_premium(utcnow()):
                query = query.filter(or_(Quiz.is_premium.is_(False), Quiz.owner_id == user.id))

        return query.order_by(Quiz.created_at.desc()).offset(skip).limit(limit).all()

    def load_questions(self, db: Session, quiz_id: UUID) -> List[Question]:
        """Questions of a quiz in order, with options loaded"""
        return (
            db.query(Question)
            .options(selectinload(Question.options))
            .filter(Question.quiz_id == quiz_id)
            .order_by(Question.position, Question.id)
            .all()
        )

    def get_player_questions(self, db: Session, quiz: Quiz) -> List[Dict[str, Any]]:
        """
        Questions as a player sees them, never including correctness

        Cached in Redis per quiz; any authoring change clears the entry.
        """
        cache_key = cache_service.player_view_key(str(quiz.id))
        cached = cache_service.get(cache_key)
        if cached is not None:
            return cached

        questions = [
            {
                "id": str(question.id),
                "position": question.position,
                "content": question.content,
                "type": question.type,
                "image_url": question.image_url,
                "options": [
                    {"id": str(option.id), "content": option.content}
                    for option in question.options
                ],
            }
            for question in self.load_questions(db, quiz.id)
        ]

        cache_service.set(cache_key, questions)
        return questions

    def get_quiz_detail(self, db: Session, quiz_id: UUID, user: Optional[User]) -> Dict[str, Any]:
        """Quiz metadata, plus questions with correctness for owners and admins"""
        quiz = self.get_visible_quiz(db, quiz_id, user)

        detail = {
            column.name: getattr(quiz, column.name)
            for column in Quiz.__table__.columns
        }
        detail["questions"] = []

        if user is not None and (user.is_admin or quiz.owner_id == user.id):
            detail["questions"] = self.load_questions(db, quiz.id)

        return detail

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def create_quiz(self, db: Session, user: User, data: QuizCreate) -> Quiz:
        """Create a quiz, optionally with its questions in one go"""
        if data.is_premium:
            self.ensure_can_author(user)

        quiz = Quiz(
            owner_id=user.id,
            title=data.title,
            description=data.description,
            time_limit=data.time_limit,
            is_premium=data.is_premium,
            is_hidden=data.is_hidden,
            total_questions=0,
            total_attempts=0,
        )
        db.add(quiz)
        db.flush()

        for position, question_data in enumerate(data.questions, start=1):
            self._build_question(db, quiz.id, position, question_data)
        quiz.total_questions = len(data.questions)

        db.commit()
        db.refresh(quiz)

        logger.info(f"Quiz created: {quiz.id} by user {user.id} with {quiz.total_questions} questions")

        return quiz

    def update_quiz(self, db: Session, user: User, quiz_id: UUID, data: QuizUpdate) -> Quiz:
        quiz = self.get_visible_quiz(db, quiz_id, user)
        self.ensure_can_manage(quiz, user)

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field in ("title", "is_premium", "is_hidden") and value is None:
                raise InvalidError(f"{field} cannot be null")
            if field == "is_premium" and value and not quiz.is_premium:
                self.ensure_can_author(user)
            setattr(quiz, field, value)

        db.commit()
        db.refresh(quiz)
        cache_service.clear_quiz_cache(str(quiz.id))

        logger.info(f"Quiz updated: {quiz.id} fields={sorted(changes)}")

        return quiz

    def delete_quiz(self, db: Session, user: User, quiz_id: UUID) -> None:
        quiz = self.get_visible_quiz(db, quiz_id, user)
        self.ensure_can_manage(quiz, user)

        db.delete(quiz)
        db.commit()
        cache_service.clear_quiz_cache(str(quiz_id))

        logger.info(f"Quiz deleted: {quiz_id} by user {user.id}")

    def set_hidden(self, db: Session, quiz_id: UUID, hidden: Optional[bool] = None) -> Quiz:
        """Admin toggle; hidden=None flips the current flag"""
        quiz = db.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found", error="quiz_not_found")

        quiz.is_hidden = (not quiz.is_hidden) if hidden is None else hidden
        db.commit()
        db.refresh(quiz)

        logger.info(f"Quiz {quiz.id} hidden={quiz.is_hidden}")

        return quiz

    def add_question(self, db: Session, user: User, quiz_id: UUID, data: QuestionCreate) -> Question:
        quiz = self.get_visible_quiz(db, quiz_id, user)
        self.ensure_can_manage(quiz, user)

        last_position = max((q.position for q in quiz.questions), default=0)
        question = self._build_question(db, quiz.id, last_position + 1, data)

        db.execute(
            update(Quiz)
            .where(Quiz.id == quiz.id)
            .values(total_questions=Quiz.total_questions + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(question)
        cache_service.clear_quiz_cache(str(quiz.id))

        logger.info(f"Question {question.id} added to quiz {quiz.id}")

        return question

    def update_question(self, db: Session, user: User, question_id: UUID, data: QuestionUpdate) -> Question:
        question = self._get_managed_question(db, user, question_id)

        changes = data.model_dump(exclude_unset=True, exclude={"options"})
        for field, value in changes.items():
            if field in ("content", "type") and value is None:
                raise InvalidError(f"{field} cannot be null")
            setattr(question, field, value)

        if data.options is not None:
            self._validate_options(data.options)
            question.options.clear()
            db.flush()
            for position, option in enumerate(data.options, start=1):
                question.options.append(AnswerOption(
                    position=position,
                    content=option.content,
                    is_correct=option.is_correct,
                ))

        db.commit()
        db.refresh(question)
        cache_service.clear_quiz_cache(str(question.quiz_id))

        logger.info(f"Question {question.id} updated")

        return question

    def delete_question(self, db: Session, user: User, question_id: UUID) -> None:
        question = self._get_managed_question(db, user, question_id)
        quiz_id = question.quiz_id

        db.delete(question)
        db.execute(
            update(Quiz)
            .where(Quiz.id == quiz_id)
            .values(total_questions=Quiz.total_questions - 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        cache_service.clear_quiz_cache(str(quiz_id))

        logger.info(f"Question {question_id} deleted from quiz {quiz_id}")

    def import_quiz(
        self,
        db: Session,
        user: User,
        title: str,
        extracted: List[Dict[str, Any]]
    ) -> Quiz:
        """
        Create a quiz from questions extracted out of a document

        Each extracted item has questionText, questionType, options,
        correctAnswer and explanation. Items whose correct answer does not
        match exactly one option are skipped.
        """
        self.ensure_can_author(user)

        questions = []
        for item in extracted:
            options = [str(o) for o in item.get("options") or [] if str(o).strip()]
            correct = str(item.get("correctAnswer", ""))
            if len(options) < 2 or options.count(correct) != 1:
                logger.warning(f"Skipping extracted question without a unique correct option: {item.get('questionText')!r}")
                continue

            question_type = item.get("questionType")
            questions.append(QuestionCreate(
                content=item.get("questionText") or "Untitled question",
                type=question_type if question_type in ("mcq", "true_false") else "mcq",
                explanation=item.get("explanation") or None,
                options=[{"content": o, "is_correct": o == correct} for o in options],
            ))

        if not questions:
            raise InvalidError("No usable questions could be extracted from the file", error="import_empty")

        quiz = self.create_quiz(db, user, QuizCreate(
            title=title[:255],
            description="Quiz imported automatically from a file.",
            questions=questions,
        ))

        logger.info(f"Imported quiz {quiz.id}: {len(questions)} of {len(extracted)} extracted questions kept")

        return quiz

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_managed_question(self, db: Session, user: User, question_id: UUID) -> Question:
        question = db.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question not found", error="question_not_found")
        quiz = self.get_visible_quiz(db, question.quiz_id, user)
        self.ensure_can_manage(quiz, user)
        return question

    def _validate_options(self, options) -> None:
        correct = sum(1 for option in options if option.is_correct)
        if correct != 1:
            raise InvalidError(
                f"A question needs exactly one correct option, got {correct}",
                error="invalid_options",
            )

    def _build_question(self, db: Session, quiz_id: UUID, position: int, data: QuestionCreate) -> Question:
        self._validate_options(data.options)

        question = Question(
            quiz_id=quiz_id,
            position=position,
            content=data.content,
            type=data.type,
            image_url=data.image_url,
            explanation=data.explanation,
        )
        for option_position, option in enumerate(data.options, start=1):
            question.options.append(AnswerOption(
                position=option_position,
                content=option.content,
                is_correct=option.is_correct,
            ))

        db.add(question)
        db.flush()
        return question


# Global instance
quiz_service = QuizService()
