"""
Question and AnswerOption models
"""
from sqlalchemy import Column, String, Text, Integer, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid

from app.database import Base


class Question(Base):
    """
    Questions table - belongs to exactly one quiz
    """
    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    image_url = Column(String(512), nullable=True)
    type = Column(String(20), nullable=False, default="mcq")  # mcq, true_false
    explanation = Column(Text, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")
    options = relationship(
        "AnswerOption",
        back_populates="question",
        order_by="AnswerOption.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Question(id={self.id}, quiz_id={self.quiz_id}, position={self.position})>"


class AnswerOption(Base):
    """
    Answer options table - is_correct is only read server-side during grading
    """
    __tablename__ = "answer_options"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("Question", back_populates="options")

    def __repr__(self):
        return f"<AnswerOption(id={self.id}, question_id={self.question_id})>"
