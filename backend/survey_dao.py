"""Loads surveys for export.

Structure and responses are loaded separately: the structure once per
export, the responses in windows of `limit` rows so that large response
tables never have to fit in memory at once.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import Table, select
from sqlalchemy.orm import Session

from errors import ExportError
from fieldmap import create_field_map
from models import AnswerOption, Question, QuestionGroup, Survey, SurveyLanguageSetting
from survey import AnswerRecord, GroupRecord, LanguageSetting, QuestionRecord, SurveyData
from survey_tables import reflect_table, response_table_name, table_exists, token_table_name

logger = logging.getLogger(__name__)


class SurveyDao:
    def __init__(self, db: Session):
        self.db = db
        self._tables: dict[str, Optional[Table]] = {}

    def _table(self, name: str) -> Optional[Table]:
        """Reflect a per-survey table once; None when it does not exist."""
        if name not in self._tables:
            bind = self.db.get_bind()
            self._tables[name] = reflect_table(bind, name) if table_exists(bind, name) else None
        return self._tables[name]

    def load_survey_by_id(self, survey_id) -> SurveyData:
        """Load a survey's structure (no responses) in its base language.

        Args:
            survey_id (int): Survey id.

        Returns:
            SurveyData: Structure, tokens, language settings and field map.

        Raises:
            ExportError: If the id is missing, not an integer, or unknown.
        """
        try:
            sid = int(survey_id)
        except (TypeError, ValueError):
            raise ExportError(f"An invalid survey ID was encountered: {survey_id!r}")
        row = self.db.get(Survey, sid) if sid > 0 else None
        if not row:
            raise ExportError(f"An invalid survey ID was encountered: {survey_id!r}")
        lang = row.language

        groups = self.db.execute(
            select(QuestionGroup)
            .where(QuestionGroup.sid == sid, QuestionGroup.language == lang)
            .order_by(QuestionGroup.group_order)
        ).scalars().all()

        questions = self.db.execute(
            select(Question)
            .join(QuestionGroup, (QuestionGroup.gid == Question.gid) & (QuestionGroup.language == Question.language))
            .where(Question.sid == sid, Question.language == lang)
            .order_by(QuestionGroup.group_order, Question.question_order)
        ).scalars().all()

        # scale_id before sortorder: when options are re-keyed by code across
        # scales, the higher scale is the one that remains.
        answers = self.db.execute(
            select(AnswerOption)
            .join(Question, (Question.qid == AnswerOption.qid) & (Question.language == AnswerOption.language))
            .where(Question.sid == sid, AnswerOption.language == lang)
            .order_by(AnswerOption.qid, AnswerOption.scale_id, AnswerOption.sortorder)
        ).scalars().all()

        settings = self.db.execute(
            select(SurveyLanguageSetting).where(SurveyLanguageSetting.surveyls_survey_id == sid)
        ).scalars().all()
        settings = sorted(settings, key=lambda s: s.surveyls_language != lang)

        token_table = self._table(token_table_name(sid))
        tokens = []
        if token_table is not None:
            tokens = [dict(r) for r in self.db.execute(select(token_table)).mappings().all()]

        survey = SurveyData(
            id=sid,
            language=lang,
            groups=[GroupRecord(g.gid, g.group_name, g.group_order) for g in groups],
            questions=[
                QuestionRecord(
                    qid=q.qid, parent_qid=q.parent_qid or 0, gid=q.gid, type=q.type,
                    title=q.title, question=q.question or "", other=bool(q.other),
                    question_order=q.question_order, scale_id=q.scale_id or 0, language=q.language,
                )
                for q in questions
            ],
            answers=[AnswerRecord(a.qid, a.scale_id, a.code, a.answer or "", a.sortorder) for a in answers],
            tokens=tokens,
            language_settings=[
                LanguageSetting(s.surveyls_language, s.surveyls_title or "", s.surveyls_description or "")
                for s in settings
            ],
        )
        survey.field_map = create_field_map(
            sid, survey.questions, survey.answers,
            anonymized=bool(row.anonymized), datestamp=bool(row.datestamp),
            ipaddr=bool(row.ipaddr), refurl=bool(row.refurl),
        )
        logger.debug("Loaded survey %s: %d questions, %d fields, %d tokens",
                     sid, len(survey.questions), len(survey.field_map), len(tokens))
        return survey

    def load_survey_results(self, survey: SurveyData, limit: int, offset: int) -> int:
        """Replace `survey.responses` with up to `limit` rows starting at `offset`.

        Rows are ordered by response id. When the survey has a token table, its
        columns (other than `token`) are outer-joined onto each response.

        Args:
            survey (SurveyData): Survey whose response window is refilled.
            limit (int): Maximum number of rows.
            offset (int): 0-based row offset.

        Returns:
            int: Number of rows now in the window.

        Raises:
            ExportError: If the survey has no response table.
        """
        if limit <= 0:
            return survey.replace_responses([])
        responses = self._table(response_table_name(survey.id))
        if responses is None:
            raise ExportError(f"Survey {survey.id} has no response table")

        stmt = select(responses)
        tokens = self._table(token_table_name(survey.id))
        if tokens is not None and "token" in responses.c:
            extra = [c for c in tokens.c if c.name != "token" and c.name not in responses.c]
            stmt = select(responses, *extra).select_from(
                responses.outerjoin(tokens, tokens.c.token == responses.c.token)
            )
        stmt = stmt.order_by(responses.c.id).limit(limit).offset(offset)
        rows = [dict(r) for r in self.db.execute(stmt).mappings().all()]
        return survey.replace_responses(rows)
