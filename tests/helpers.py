"""
Helpers for addressing quiz questions and options by number and letter
"""
from app.schemas.attempt import AnswerItem

OPTION_LABELS = ["A", "B", "C", "D"]


def option(quiz, question_number, label):
    """AnswerOption of a quiz by 1-based question number and letter"""
    question = quiz.questions[question_number - 1]
    return question.options[OPTION_LABELS.index(label)]


def question_id(quiz, question_number):
    return quiz.questions[question_number - 1].id


def answers(quiz, *choices, seq=None):
    """answers(quiz, (1, "B"), (2, None)) -> list of AnswerItem"""
    items = []
    for question_number, label in choices:
        items.append(AnswerItem(
            question_id=question_id(quiz, question_number),
            selected_answer_id=option(quiz, question_number, label).id if label else None,
            client_seq=seq,
        ))
    return items


def answers_json(quiz, *choices):
    return [
        {
            "question_id": str(item.question_id),
            "selected_answer_id": str(item.selected_answer_id) if item.selected_answer_id else None,
        }
        for item in answers(quiz, *choices)
    ]
