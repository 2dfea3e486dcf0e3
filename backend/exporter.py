"""Survey results export: pages responses out of storage into a writer."""
from __future__ import annotations

import logging
import os
from typing import BinaryIO, Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from errors import ExportError
from schemas import FormattingOptions
from survey_dao import SurveyDao
from translator import Translator
from writers import writer_for

load_dotenv()
EXPORT_BATCH_SIZE = int(os.getenv("EXPORT_BATCH_SIZE", "100"))

logger = logging.getLogger(__name__)


def export_survey(
    db: Session,
    survey_id: int,
    language_code: str,
    export_format: str,
    options: FormattingOptions,
    *,
    stream: Optional[BinaryIO] = None,
    translator: Optional[Translator] = None,
    batch_size: Optional[int] = None,
) -> Optional[str]:
    """Export a survey's responses.

    Responses are loaded `batch_size` rows at a time; the last batch is
    shortened so nothing past `options.response_max_record` is read. The
    export ends when that record is reached or storage returns no more rows.

    Args:
        db (Session): DB session.
        survey_id (int): Survey id.
        language_code (str): Language of headings and answer texts.
        export_format (str): "csv", "doc", "xls" or "pdf"; anything else exports CSV.
        options (FormattingOptions): Record range, columns and formatting.
        stream (BinaryIO|None): Destination for `display` output.
        translator (Translator|None): Translation cache for this export.
        batch_size (int|None): Rows per batch, EXPORT_BATCH_SIZE by default.

    Returns:
        str|None: Path of the written file for `file` output, else None.

    Raises:
        ExportError: Missing survey id, language or options, no selected
            columns, unknown survey, or an unsupported answer format. A partly
            written output file is removed before the error propagates.
    """
    if not survey_id:
        raise ExportError("A survey ID must be supplied.")
    if not language_code:
        raise ExportError("A language code must be supplied.")
    if options is None:
        raise ExportError("Formatting options must be supplied.")
    if not options.selected_columns:
        raise ExportError("At least one column must be selected for export.")

    batch_limit = batch_size or EXPORT_BATCH_SIZE
    writer = writer_for(export_format)(translator or Translator())
    dao = SurveyDao(db)
    survey = dao.load_survey_by_id(survey_id)
    logger.info("Exporting survey %s as %s (%s), records %s-%s", survey.id, type(writer).__name__,
                options.output, options.response_min_record, options.response_max_record or "all")

    writer.init(survey, language_code, options, stream=stream)
    try:
        max_record = options.response_max_record
        current = options.response_min_record - 1
        first = True
        while True:
            limit = batch_limit
            if max_record is not None and limit > max_record - current:
                limit = max_record - current
            loaded = dao.load_survey_results(survey, limit, current)
            current += loaded
            logger.debug("Survey %s: loaded %d responses, at record %d", survey.id, loaded, current)
            writer.write(survey, language_code, options, first)
            first = False
            if loaded == 0 or (max_record is not None and current >= max_record):
                break
        survey.replace_responses([])
        filename = writer.close()
    except Exception:
        logger.exception("Export of survey %s failed", survey.id)
        writer.abort()
        raise

    logger.info("Exported %d responses of survey %s", writer.records_written, survey.id)
    if options.output == "file":
        return filename
    return None
