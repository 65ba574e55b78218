"""
Test-attempt engine
Start → autosave drafts → submit (completed / late) or abandon
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ForbiddenError, InvalidError, NotFoundError
from app.models import AttemptStatus, DraftAnswer, Notification, Question, Quiz, TestAttempt, User
from app.services.attempt_state import assert_transition, attempt_conflict
from app.services.grading_service import grading_service
from app.services.leaderboard_service import leaderboard_service
from app.services.notification_service import notification_service
from app.services.quiz_service import quiz_service
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class AttemptService:
    """
    Service for the attempt lifecycle

    Every terminal transition is a conditional UPDATE guarded by
    status = 'in_progress'; the row count tells whether this call won.
    The quiz attempt counter is bumped with an SQL increment inside the
    same transaction as the winning transition.
    """

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def start_attempt(
        self,
        db: Session,
        user: User,
        quiz_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Start or resume an attempt

        If the user already has an in-progress attempt at this quiz it is
        returned unchanged; otherwise a new one is created.

        Raises:
            NotFoundError: quiz missing or hidden from the user
            PaymentRequiredError: premium quiz without entitlement
            InvalidError: quiz has no questions
        """
        now = now or utcnow()

        quiz = quiz_service.get_visible_quiz(db, quiz_id, user)
        quiz_service.ensure_entitled(quiz, user, now)

        existing = self._find_in_progress(db, user.id, quiz.id)
        if existing is not None:
            logger.info(f"Resuming attempt {existing.id} for user {user.id} on quiz {quiz.id}")
            return self._start_payload(db, quiz, existing, now, resumed=True)

        questions = quiz_service.load_questions(db, quiz.id)
        if not questions:
            raise InvalidError("Quiz has no questions", error="quiz_has_no_questions")

        deadline_at = None
        if quiz.time_limit and quiz.time_limit > 0:
            deadline_at = now + timedelta(minutes=quiz.time_limit)

        attempt = TestAttempt(
            quiz_id=quiz.id,
            user_id=user.id,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=now,
            deadline_at=deadline_at,
            last_activity_at=now,
            total_questions=len(questions),
            question_ids=[str(q.id) for q in questions],
            correct_answers=0,
        )
        db.add(attempt)

        try:
            db.commit()
        except IntegrityError:
            # Another request created the in-progress attempt first
            db.rollback()
            existing = self._find_in_progress(db, user.id, quiz.id)
            if existing is None:
                raise
            logger.info(f"Lost start race, resuming attempt {existing.id}")
            return self._start_payload(db, quiz, existing, now, resumed=True)

        logger.info(
            f"Attempt {attempt.id} started: user={user.id}, quiz={quiz.id}, "
            f"questions={attempt.total_questions}, deadline={deadline_at}"
        )

        return self._start_payload(db, quiz, attempt, now, resumed=False)

    def _start_payload(
        self,
        db: Session,
        quiz: Quiz,
        attempt: TestAttempt,
        now: datetime,
        resumed: bool
    ) -> Dict[str, Any]:
        remaining_seconds = None
        if attempt.deadline_at is not None:
            remaining_seconds = max(0, int((attempt.deadline_at - now).total_seconds()))

        return {
            "attempt_id": attempt.id,
            "status": attempt.status,
            "resumed": resumed,
            "quiz": {
                "id": quiz.id,
                "title": quiz.title,
                "description": quiz.description,
                "time_limit": quiz.time_limit,
            },
            "questions": self._player_questions(db, quiz, attempt),
            "total_questions": attempt.total_questions,
            "started_at": attempt.started_at,
            "deadline_at": attempt.deadline_at,
            "remaining_seconds": remaining_seconds,
            "draft_answers": self._draft_list(db, attempt.id),
        }

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    def autosave(
        self,
        db: Session,
        user: User,
        attempt_id: UUID,
        answers: List[Any],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Merge draft selections into an in-progress attempt

        Last write wins per question. Calls against a finished attempt are
        no-ops reported with saved = False.

        Args:
            answers: items with question_id, selected_answer_id and an
                optional client_seq; a stored draft with a higher client_seq
                is not overwritten
        """
        now = now or utcnow()
        attempt = self._get_owned_attempt(db, user, attempt_id)

        if attempt.status_enum.is_terminal:
            logger.info(f"Autosave ignored for attempt {attempt.id}: status={attempt.status}")
            return self._autosave_payload(db, attempt, saved=False)

        self._reject_duplicates(answers)

        _, questions_by_id = self._snapshot(db, attempt)
        for item in answers:
            if item.selected_answer_id is None:
                self._ensure_question_in_quiz(questions_by_id, item.question_id)
            else:
                grading_service.validate_selection(questions_by_id, item.question_id, item.selected_answer_id)

        # Touching the row first serializes against a concurrent submit/abandon
        touched = db.execute(
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt.id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(last_activity_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount

        if not touched:
            db.rollback()
            db.refresh(attempt)
            logger.info(f"Autosave ignored for attempt {attempt.id}: finished concurrently")
            return self._autosave_payload(db, attempt, saved=False)

        for item in answers:
            if item.selected_answer_id is None:
                self._clear_draft(db, attempt.id, item)
            else:
                self._upsert_draft(db, attempt.id, item, now)

        db.commit()

        logger.debug(f"Autosaved {len(answers)} answers for attempt {attempt.id}")

        return self._autosave_payload(db, attempt, saved=True)

    def _upsert_draft(self, db: Session, attempt_id: UUID, item: Any, now: datetime) -> None:
        """Insert or overwrite the draft for one question in a single statement"""
        dialect_insert = postgresql.insert if db.get_bind().dialect.name == "postgresql" else sqlite.insert
        table = DraftAnswer.__table__
        client_seq = getattr(item, "client_seq", None)

        stmt = dialect_insert(table).values(
            attempt_id=attempt_id,
            question_id=item.question_id,
            selected_answer_id=item.selected_answer_id,
            client_seq=client_seq,
            updated_at=now,
        )

        stale_guard = None
        if client_seq is not None:
            stale_guard = table.c.client_seq.is_(None) | (table.c.client_seq <= stmt.excluded.client_seq)

        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.attempt_id, table.c.question_id],
            set_={
                "selected_answer_id": stmt.excluded.selected_answer_id,
                "client_seq": stmt.excluded.client_seq,
                "updated_at": stmt.excluded.updated_at,
            },
            where=stale_guard,
        )
        db.execute(stmt)

    def _clear_draft(self, db: Session, attempt_id: UUID, item: Any) -> None:
        """A null selection removes the question's draft, subject to the same sequence guard"""
        stmt = delete(DraftAnswer).where(
            DraftAnswer.attempt_id == attempt_id,
            DraftAnswer.question_id == item.question_id,
        )
        client_seq = getattr(item, "client_seq", None)
        if client_seq is not None:
            stmt = stmt.where(DraftAnswer.client_seq.is_(None) | (DraftAnswer.client_seq <= client_seq))
        db.execute(stmt.execution_options(synchronize_session=False))

    def _autosave_payload(self, db: Session, attempt: TestAttempt, saved: bool) -> Dict[str, Any]:
        return {
            "attempt_id": attempt.id,
            "status": attempt.status,
            "saved": saved,
            "draft_answers": self._draft_list(db, attempt.id),
        }

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(
        self,
        db: Session,
        user: User,
        attempt_id: UUID,
        answers: List[Any],
        now: Optional[datetime] = None
    ) -> Tuple[TestAttempt, Optional[Notification]]:
        """
        Grade and finalize an attempt

        The final answer set is the saved drafts overlaid with the submitted
        answers. Status is late when the attempt had a deadline and now is
        past it, completed otherwise.

        Returns:
            Tuple of (finished attempt, "attempt completed" notification or None)

        Raises:
            NotFoundError / ForbiddenError: missing or foreign attempt
            ConflictError: attempt already finished, or finished concurrently
            InvalidError: malformed answers
        """
        now = now or utcnow()
        attempt = self._get_owned_attempt(db, user, attempt_id)
        assert_transition(attempt.id, attempt.status_enum, AttemptStatus.COMPLETED)

        self._reject_duplicates(answers)

        question_ids, questions_by_id = self._snapshot(db, attempt)
        if not question_ids:
            raise InvalidError("Quiz has no questions", error="quiz_has_no_questions")

        # Drafts that no longer match the quiz (question edited away) are dropped
        selections: Dict[UUID, Optional[UUID]] = {}
        drafts = db.query(DraftAnswer.question_id, DraftAnswer.selected_answer_id).filter(
            DraftAnswer.attempt_id == attempt.id
        ).all()
        for draft_question_id, draft_answer_id in drafts:
            question = questions_by_id.get(draft_question_id)
            if question and any(o.id == draft_answer_id for o in question.options):
                selections[draft_question_id] = draft_answer_id

        for item in answers:
            if item.selected_answer_id is None:
                self._ensure_question_in_quiz(questions_by_id, item.question_id)
                selections.pop(item.question_id, None)
                continue
            grading_service.validate_selection(questions_by_id, item.question_id, item.selected_answer_id)
            selections[item.question_id] = item.selected_answer_id

        correct, score, graded = grading_service.grade(
            list(questions_by_id.values()), selections, question_ids
        )

        is_late = attempt.deadline_at is not None and now > attempt.deadline_at
        target = AttemptStatus.LATE if is_late else AttemptStatus.COMPLETED
        completion_time = max(0, int((now - attempt.started_at).total_seconds()))

        won = db.execute(
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt.id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(
                status=target.value,
                completed_at=now,
                last_activity_at=now,
                correct_answers=correct,
                score=score,
                completion_time=completion_time,
                answers=graded,
            )
            .execution_options(synchronize_session=False)
        ).rowcount

        if not won:
            db.rollback()
            db.refresh(attempt)
            logger.warning(f"Submit lost race for attempt {attempt.id}: status={attempt.status}")
            raise attempt_conflict(attempt.id, attempt.status_enum)

        db.execute(
            update(Quiz)
            .where(Quiz.id == attempt.quiz_id)
            .values(total_attempts=Quiz.total_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(attempt)

        logger.info(
            f"Attempt {attempt.id} submitted: status={attempt.status}, "
            f"score={score}, correct={correct}/{len(question_ids)}, time={completion_time}s"
        )

        self._record_leaderboard(db, attempt)
        notification = self._notify_completed(db, attempt)

        return attempt, notification

    def _record_leaderboard(self, db: Session, attempt: TestAttempt) -> None:
        try:
            action = leaderboard_service.record_attempt(
                db,
                quiz_id=attempt.quiz_id,
                user_id=attempt.user_id,
                attempt_id=attempt.id,
                score=attempt.score,
                time_spent=attempt.completion_time or 0,
            )
            logger.info(f"Leaderboard {action} for attempt {attempt.id}")
        except Exception as e:
            # The attempt is already committed; the leaderboard can be rebuilt
            db.rollback()
            logger.error(f"Failed to update leaderboard for attempt {attempt.id}: {str(e)}")

    def _notify_completed(self, db: Session, attempt: TestAttempt) -> Optional[Notification]:
        quiz = db.get(Quiz, attempt.quiz_id)
        title = quiz.title if quiz else "quiz"
        try:
            return notification_service.create(
                db,
                user_id=attempt.user_id,
                title="Quiz completed",
                content=(
                    f"You scored {attempt.score}% on \"{title}\" "
                    f"({attempt.correct_answers}/{attempt.total_questions} correct)."
                ),
                type="attempt",
                data={
                    "quiz_id": str(attempt.quiz_id),
                    "attempt_id": str(attempt.id),
                    "status": attempt.status,
                    "score": attempt.score,
                },
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create completion notification for attempt {attempt.id}: {str(e)}")
            return None

    # ------------------------------------------------------------------
    # Abandon
    # ------------------------------------------------------------------

    def abandon(
        self,
        db: Session,
        user: User,
        attempt_id: UUID,
        now: Optional[datetime] = None
    ) -> TestAttempt:
        """
        Abandon an in-progress attempt without scoring it

        Raises:
            ConflictError: attempt already finished, or finished concurrently
        """
        now = now or utcnow()
        attempt = self._get_owned_attempt(db, user, attempt_id)
        assert_transition(attempt.id, attempt.status_enum, AttemptStatus.ABANDONED)

        if not self._transition_to_abandoned(db, attempt, now):
            db.rollback()
            db.refresh(attempt)
            logger.warning(f"Abandon lost race for attempt {attempt.id}: status={attempt.status}")
            raise attempt_conflict(attempt.id, attempt.status_enum)

        db.commit()
        db.refresh(attempt)

        logger.info(f"Attempt {attempt.id} abandoned by user {user.id}")

        return attempt

    def _transition_to_abandoned(self, db: Session, attempt: TestAttempt, now: datetime) -> bool:
        completion_time = max(0, int((now - attempt.started_at).total_seconds()))
        return bool(db.execute(
            update(TestAttempt)
            .where(
                TestAttempt.id == attempt.id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(
                status=AttemptStatus.ABANDONED.value,
                completed_at=now,
                last_activity_at=now,
                completion_time=completion_time,
            )
            .execution_options(synchronize_session=False)
        ).rowcount)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def expire_stale_attempts(
        self,
        db: Session,
        now: Optional[datetime] = None,
        grace_seconds: Optional[int] = None
    ) -> int:
        """
        Abandon in-progress attempts whose deadline passed more than
        grace_seconds ago

        Attempts at untimed quizzes are never expired. Returns the number of
        attempts transitioned.
        """
        now = now or utcnow()
        if grace_seconds is None:
            grace_seconds = settings.ATTEMPT_EXPIRY_GRACE_SECONDS
        cutoff = now - timedelta(seconds=grace_seconds)

        overdue = db.query(TestAttempt).filter(
            TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            TestAttempt.deadline_at.is_not(None),
            TestAttempt.deadline_at < cutoff,
        ).all()

        expired = 0
        for attempt in overdue:
            if self._transition_to_abandoned(db, attempt, now):
                expired += 1

        db.commit()

        if expired:
            logger.info(f"Automatically expired {expired} overdue attempts")

        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_in_progress(self, db: Session, user: User) -> List[Dict[str, Any]]:
        """In-progress attempts of a user with quiz title and draft progress"""
        draft_counts = (
            db.query(DraftAnswer.attempt_id, func.count(DraftAnswer.id).label("answered"))
            .group_by(DraftAnswer.attempt_id)
            .subquery()
        )

        rows = (
            db.query(TestAttempt, Quiz.title, draft_counts.c.answered)
            .join(Quiz, Quiz.id == TestAttempt.quiz_id)
            .outerjoin(draft_counts, draft_counts.c.attempt_id == TestAttempt.id)
            .filter(
                TestAttempt.user_id == user.id,
                TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .order_by(TestAttempt.started_at.desc())
            .all()
        )

        result = []
        for attempt, quiz_title, answered in rows:
            answered = answered or 0
            progress = answered / attempt.total_questions if attempt.total_questions else 0.0
            result.append({
                "attempt_id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "quiz_title": quiz_title,
                "started_at": attempt.started_at,
                "deadline_at": attempt.deadline_at,
                "answered": answered,
                "total_questions": attempt.total_questions,
                "progress": round(min(progress, 1.0), 4),
            })

        return result

    def get_history(
        self,
        db: Session,
        user: User,
        quiz_id: Optional[UUID] = None
    ) -> List[Dict[str, Any]]:
        """All attempts of a user, newest first"""
        query = (
            db.query(TestAttempt, Quiz.title)
            .join(Quiz, Quiz.id == TestAttempt.quiz_id)
            .filter(TestAttempt.user_id == user.id)
        )
        if quiz_id:
            query = query.filter(TestAttempt.quiz_id == quiz_id)

        rows = query.order_by(
            func.coalesce(TestAttempt.completed_at, TestAttempt.started_at).desc()
        ).all()

        return [
            {
                "attempt_id": attempt.id,
                "quiz_id": attempt.quiz_id,
                "quiz_title": quiz_title,
                "status": attempt.status,
                "score": attempt.score,
                "total_questions": attempt.total_questions,
                "correct_answers": attempt.correct_answers,
                "completion_time": attempt.completion_time,
                "started_at": attempt.started_at,
                "completed_at": attempt.completed_at,
            }
            for attempt, quiz_title in rows
        ]

    def get_attempt_details(self, db: Session, user: User, attempt_id: UUID) -> Dict[str, Any]:
        """
        Review of one attempt

        Correct options are only revealed once the attempt is finished.
        """
        attempt = self._get_owned_attempt(db, user, attempt_id)
        quiz = db.get(Quiz, attempt.quiz_id)

        details = {
            "attempt_id": attempt.id,
            "quiz_id": attempt.quiz_id,
            "quiz_title": quiz.title if quiz else None,
            "status": attempt.status,
            "score": attempt.score,
            "total_questions": attempt.total_questions,
            "correct_answers": attempt.correct_answers,
            "incorrect_answers": (
                attempt.total_questions - attempt.correct_answers
                if attempt.status_enum.is_terminal and attempt.score is not None else None
            ),
            "completion_time": attempt.completion_time,
            "started_at": attempt.started_at,
            "completed_at": attempt.completed_at,
            "answers": [],
        }

        if not attempt.answers:
            return details

        questions_by_id = {str(q.id): q for q in quiz_service.load_questions(db, attempt.quiz_id)}

        for entry in attempt.answers:
            question = questions_by_id.get(entry["question_id"])
            options = {str(o.id): o for o in question.options} if question else {}
            selected = options.get(entry["selected_answer_id"]) if entry["selected_answer_id"] else None
            correct = next((o for o in options.values() if o.is_correct), None)

            details["answers"].append({
                "question_id": entry["question_id"],
                "question": question.content if question else None,
                "explanation": question.explanation if question else None,
                "selected_answer_id": entry["selected_answer_id"],
                "selected_answer": selected.content if selected else None,
                "correct_answer_id": str(correct.id) if correct else None,
                "correct_answer": correct.content if correct else None,
                "is_correct": entry["is_correct"],
            })

        return details

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_owned_attempt(self, db: Session, user: User, attempt_id: UUID) -> TestAttempt:
        attempt = db.get(TestAttempt, attempt_id)
        if attempt is None:
            raise NotFoundError("Test attempt not found", error="attempt_not_found")
        if attempt.user_id != user.id:
            raise ForbiddenError("You can only access your own test attempts")
        return attempt

    def _snapshot(self, db: Session, attempt: TestAttempt) -> Tuple[List[UUID], Dict[UUID, Question]]:
        """
        The question set fixed at start, and those of its questions that still exist

        Attempts without a stored snapshot fall back to the quiz's current questions.
        """
        questions = quiz_service.load_questions(db, attempt.quiz_id)
        if attempt.question_ids is None:
            return [q.id for q in questions], {q.id: q for q in questions}

        question_ids = [UUID(question_id) for question_id in attempt.question_ids]
        wanted = set(question_ids)
        return question_ids, {q.id: q for q in questions if q.id in wanted}

    def _player_questions(self, db: Session, quiz: Quiz, attempt: TestAttempt) -> List[Dict[str, Any]]:
        questions = quiz_service.get_player_questions(db, quiz)
        if attempt.question_ids is None:
            return questions
        wanted = set(attempt.question_ids)
        return [q for q in questions if q["id"] in wanted]

    def _find_in_progress(self, db: Session, user_id: UUID, quiz_id: UUID) -> Optional[TestAttempt]:
        return db.query(TestAttempt).filter(
            TestAttempt.user_id == user_id,
            TestAttempt.quiz_id == quiz_id,
            TestAttempt.status == AttemptStatus.IN_PROGRESS.value,
        ).first()

    def _draft_list(self, db: Session, attempt_id: UUID) -> List[Dict[str, Any]]:
        # Columns only; drafts are written with core statements
        rows = (
            db.query(DraftAnswer.question_id, DraftAnswer.selected_answer_id)
            .filter(DraftAnswer.attempt_id == attempt_id)
            .order_by(DraftAnswer.id)
            .all()
        )
        return [
            {"question_id": question_id, "selected_answer_id": selected_answer_id}
            for question_id, selected_answer_id in rows
        ]

    @staticmethod
    def _ensure_question_in_quiz(questions_by_id: Dict[UUID, Any], question_id: UUID) -> None:
        if question_id not in questions_by_id:
            raise InvalidError(
                f"Question {question_id} not found in quiz",
                error="question_not_in_quiz",
            )

    @staticmethod
    def _reject_duplicates(answers: List[Any]) -> None:
        seen = set()
        for item in answers:
            if item.question_id in seen:
                raise InvalidError(
                    f"Question {item.question_id} answered more than once",
                    error="duplicate_question",
                )
            seen.add(item.question_id)


# Global instance
attempt_service = AttemptService()
