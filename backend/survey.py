# In-memory survey model used by the export pipeline.
#
# Structure (groups, questions, answer options, language settings, field map)
# is loaded once per export by SurveyDao and not modified afterwards. The
# response window is refilled batch by batch.
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from fieldmap import FieldDescriptor


@dataclass(frozen=True)
class GroupRecord:
    gid: int
    group_name: str
    group_order: int


@dataclass(frozen=True)
class QuestionRecord:
    qid: int
    parent_qid: int
    gid: int
    type: str
    title: str
    question: str
    other: bool = False
    question_order: int = 0
    scale_id: int = 0
    language: str = ""


@dataclass(frozen=True)
class AnswerRecord:
    qid: int
    scale_id: int
    code: str
    answer: str
    sortorder: int = 0


@dataclass(frozen=True)
class LanguageSetting:
    language: str
    title: str
    description: str = ""


@dataclass
class SurveyData:
    """A survey's structure plus the current window of responses.

    `responses` holds at most one batch at a time; `replace_responses` drops
    the previous batch.
    """

    id: int
    language: str
    groups: list[GroupRecord] = field(default_factory=list)
    questions: list[QuestionRecord] = field(default_factory=list)
    answers: list[AnswerRecord] = field(default_factory=list)
    tokens: list[dict[str, Any]] = field(default_factory=list)
    language_settings: list[LanguageSetting] = field(default_factory=list)
    field_map: dict[str, FieldDescriptor] = field(default_factory=dict)
    responses: list[dict[str, Any]] = field(default_factory=list)

    def replace_responses(self, rows: list[dict[str, Any]]) -> int:
        self.responses = list(rows)
        return len(self.responses)

    def questions_in_group(self, group_id: Optional[int] = None) -> list[QuestionRecord]:
        """Top-level questions, optionally only those of `group_id`, in load order."""
        return [
            q for q in self.questions
            if q.parent_qid == 0 and (not group_id or q.gid == group_id)
        ]

    def sub_questions(self, parent_qid: int) -> dict[int, QuestionRecord]:
        return {q.qid: q for q in self.questions if q.parent_qid == parent_qid}

    def answer_options(self, qid: int, scale_id: Optional[int] = None) -> dict[str, AnswerRecord]:
        """Answer options of a question keyed by code.

        Without `scale_id` every scale is included, and when two scales share a
        code the one loaded last wins.
        """
        options: dict[str, AnswerRecord] = {}
        for a in self.answers:
            if a.qid != qid:
                continue
            if scale_id is None or a.scale_id == scale_id:
                options[a.code] = a
        return options

    def tokens_matching(self, token: Any) -> list[dict[str, Any]]:
        return [t for t in self.tokens if t.get("token") == token]

    def field(self, fieldname: str) -> Optional[FieldDescriptor]:
        return self.field_map.get(fieldname)

    def question_code(self, fieldname: str) -> Optional[str]:
        """Question code for a field, or None when the field is unknown or not a question."""
        f = self.field_map.get(fieldname)
        if f is None or not f.is_question:
            return None
        return f.title

    def question_text(self, fieldname: str) -> Optional[str]:
        f = self.field_map.get(fieldname)
        if f is None or not f.is_question:
            return None
        return f.question

    def _setting(self, language_code: Optional[str]) -> Optional[LanguageSetting]:
        if not self.language_settings:
            return None
        for s in self.language_settings:
            if s.language == language_code:
                return s
        for s in self.language_settings:
            if s.language == self.language:
                return s
        return self.language_settings[0]

    def title(self, language_code: Optional[str] = None) -> str:
        s = self._setting(language_code)
        return s.title if s else ""

    def description(self, language_code: Optional[str] = None) -> str:
        s = self._setting(language_code)
        return (s.description or "") if s else ""
