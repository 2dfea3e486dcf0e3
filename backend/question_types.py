# Per question type headings and answer rendering.
#
# Every question column of an export is bound to one QuestionType instance,
# looked up by the question's type tag in QUESTION_TYPES.
from __future__ import annotations

import html
import re
from typing import Any, Callable, Optional

from fieldmap import ANSWER, COMMENT, FILECOUNT, OTHER, FieldDescriptor
from schemas import FormattingOptions
from survey import SurveyData

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags_full(value: Any) -> str:
    """Plain text of a stored value: no markup, no `-oth-` marker, entities decoded."""
    if value is None:
        return ""
    text = str(value).replace("-oth-", "")
    text = _TAG_RE.sub("", text)
    return html.unescape(text).strip()


def _raw(value: Any) -> str:
    return "" if value is None else str(value)


class QuestionType:
    """Free text and any type without special rendering."""

    def __init__(self, field: FieldDescriptor, survey: SurveyData, translate: Callable[[str], str]):
        self.field = field
        self.survey = survey
        self.translate = translate

    def sub_heading(self, code: bool) -> str:
        f = self.field
        if code:
            if f.kind == OTHER:
                return f"[{self.translate('Other')}]"
            if f.kind == COMMENT and f.aid == "comment":
                return "- comment"
            return f"[{f.aid}]" if f.aid else ""
        if f.kind == OTHER:
            return f" [{self.translate('Other')}]"
        if f.kind == COMMENT:
            heading = f" [{strip_tags_full(f.subquestion)}]" if f.subquestion else ""
            if f.aid == "othercomment":
                heading += f" [{self.translate('Other')}]"
            return heading + " - comment"
        if f.kind == FILECOUNT:
            return " [filecount]"
        if f.subquestion:
            return f" [{strip_tags_full(f.subquestion)}]"
        return ""

    def render_short(self, value: Any, options: FormattingOptions) -> str:
        return _raw(value)

    def render_full(self, value: Any, options: FormattingOptions) -> str:
        if value is None:
            return ""
        if self.field.kind != ANSWER:
            return _raw(value)
        return self.full_answer(value)

    def full_answer(self, value: Any) -> str:
        return _raw(value)


class AnswerOptionType(QuestionType):
    """Codes expanded from the question's answer options."""

    scale: Optional[int] = 0

    def full_answer(self, value):
        option = self.survey.answer_options(self.field.qid, self.scale).get(str(value))
        if option is None:
            return _raw(value)
        return strip_tags_full(option.answer)


class ListType(AnswerOptionType):
    def full_answer(self, value):
        if value == "-oth-":
            return self.translate("Other")
        return super().full_answer(value)


class DualScaleType(AnswerOptionType):
    @property
    def scale(self):
        return self.field.scale_id or 0

    def sub_heading(self, code):
        f = self.field
        number = (f.scale_id or 0) + 1
        if code:
            return f"[{f.aid.split('#')[0]}][{number}]"
        return f" [{strip_tags_full(f.subquestion)}] [{self.translate('Scale')} {number}]"


class RankingType(AnswerOptionType):
    # ranks may be stored on any scale
    scale = None

    def sub_heading(self, code):
        if code:
            return f"[{self.field.aid}]"
        return f" [{self.translate('Ranking')} {self.field.aid}]"


class TwoAxisArrayType(QuestionType):
    def sub_heading(self, code):
        f = self.field
        if code:
            return f"[{f.aid}]"
        return f" [{strip_tags_full(f.subquestion1)}] [{strip_tags_full(f.subquestion2)}]"


class LabelledType(QuestionType):
    """Fixed code -> label answers; optionally Y/N substitution in short mode."""

    LABELS: dict[str, str] = {}
    substitutes_yn = False

    def render_short(self, value, options):
        if self.substitutes_yn and self.field.kind == ANSWER:
            if value == "Y" and options.y_value is not None:
                return options.y_value
            if value == "N" and options.n_value is not None:
                return options.n_value
        return _raw(value)

    def full_answer(self, value):
        label = self.LABELS.get(str(value))
        return self.translate(label) if label else _raw(value)


class YesNoType(LabelledType):
    LABELS = {"Y": "Yes", "N": "No"}
    substitutes_yn = True


class YesUncertainNoType(LabelledType):
    LABELS = {"Y": "Yes", "N": "No", "U": "Uncertain"}
    substitutes_yn = True


class GenderType(LabelledType):
    LABELS = {"F": "Female", "M": "Male"}


class IncreaseSameDecreaseType(LabelledType):
    LABELS = {"I": "Increase", "S": "Same", "D": "Decrease"}


class MultipleChoiceType(QuestionType):
    """Checkbox columns store "Y" when ticked and "" when left empty."""

    def render_short(self, value, options):
        if self.field.kind == ANSWER:
            if value == "Y" and options.y_value is not None:
                return options.y_value
            if value == "" and options.n_value is not None:
                return options.n_value
        return _raw(value)

    def full_answer(self, value):
        if value == "Y":
            return self.translate("Yes")
        if value == "":
            return self.translate("No")
        return _raw(value)


class NumericType(QuestionType):
    @staticmethod
    def _trim(value):
        text = _raw(value)
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text

    def render_short(self, value, options):
        if self.field.kind != ANSWER:
            return _raw(value)
        return self._trim(value)

    def full_answer(self, value):
        return self._trim(value)


QUESTION_TYPES: dict[str, type[QuestionType]] = {
    "L": ListType,
    "!": ListType,
    "O": ListType,
    "F": AnswerOptionType,
    "H": AnswerOptionType,
    "1": DualScaleType,
    "R": RankingType,
    ":": TwoAxisArrayType,
    ";": TwoAxisArrayType,
    "Y": YesNoType,
    "C": YesUncertainNoType,
    "G": GenderType,
    "E": IncreaseSameDecreaseType,
    "M": MultipleChoiceType,
    "P": MultipleChoiceType,
    "N": NumericType,
    "K": NumericType,
}


def question_type_for(field: FieldDescriptor, survey: SurveyData, translate: Callable[[str], str]) -> QuestionType:
    return QUESTION_TYPES.get(field.type, QuestionType)(field, survey, translate)
