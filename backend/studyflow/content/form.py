"""
Form (survey / quiz) variant.

Question and option ids are assigned on save when missing, so submissions can
reference them. Option ids are unique across the whole form.
"""
from __future__ import annotations

from typing import Literal

from pydantic import Field

from studyflow.content.base import BlockContent, ContentHandler

BLOCK_TYPE_FORM = "form"

FORM_TYPE_SURVEY = "survey"
FORM_TYPE_QUIZ = "quiz"

QUESTION_EXPLANATION = "explanation"  # text only, no answer
QUESTION_MULTIPLE = "multiple"
QUESTION_SINGLE = "single"
QUESTION_SHORT = "short"
QUESTION_LONG = "long"
QUESTION_LIKERT5 = "likert5"
QUESTION_LIKERT7 = "likert7"

FREE_TEXT_QUESTIONS = frozenset({QUESTION_SHORT, QUESTION_LONG})


class FormOption(BlockContent):
    id: int = 0
    option_text: str
    option_order: int = 0
    is_correct: Literal["yes", "no", "na"] = "na"


class FormQuestion(BlockContent):
    id: int = 0
    question_type: Literal[
        "explanation", "multiple", "single", "short", "long", "likert5", "likert7"
    ]
    question: str
    form_order: int = 0
    options: list[FormOption] = Field(default_factory=list)


class FormContent(BlockContent):
    form_type: Literal["survey", "quiz"] = FORM_TYPE_SURVEY
    allow_resubmit: bool = True
    questions: list[FormQuestion] = Field(min_length=1)

    def ordered_questions(self) -> list[FormQuestion]:
        return sorted(self.questions, key=lambda q: (q.form_order, q.id))


class FormHandler(ContentHandler):
    block_type = BLOCK_TYPE_FORM
    model = FormContent

    def prepare(self, content: FormContent) -> FormContent:
        next_question = max((q.id for q in content.questions), default=0) + 1
        next_option = max((o.id for q in content.questions for o in q.options), default=0) + 1
        for question in content.questions:
            if question.id == 0:
                question.id = next_question
                next_question += 1
            for option in question.options:
                if option.id == 0:
                    option.id = next_option
                    next_option += 1
        return content
