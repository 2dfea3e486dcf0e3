"""Output writers for survey result exports.

`Writer.write` is the same for every format: compute the headings once,
skip responses rejected by the completion filter, render one value per
selected column, then hand the row to the format's `output_record`.
Subclasses only serialize.
"""
from __future__ import annotations

import csv
import io
import logging
import os
import re
import secrets
import sys
import tempfile
from datetime import datetime
from typing import Any, BinaryIO, Optional
from xml.sax.saxutils import escape

from docx import Document
from dotenv import load_dotenv
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Table, TableStyle

from errors import ExportError
from fieldmap import FieldDescriptor
from question_types import QuestionType, question_type_for, strip_tags_full
from schemas import FormattingOptions
from survey import SurveyData
from translator import Translator

load_dotenv()
EXPORT_TEMP_DIR = os.getenv("EXPORT_TEMP_DIR", tempfile.gettempdir())
PDF_ORIENTATION = os.getenv("PDF_ORIENTATION", "P").upper()
PDF_FONT_SIZE = float(os.getenv("PDF_FONT_SIZE", "9"))

logger = logging.getLogger(__name__)

ATTRIBUTE_PREFIX = "attribute_"


def _invalid_answer_format(options: FormattingOptions) -> ExportError:
    return ExportError(
        f"An invalid answer format was selected: {options.answer_format!r}. Only 'short' and 'long' are valid."
    )


class Writer:
    extension = ""
    media_type = "application/octet-stream"

    def __init__(self, translator: Optional[Translator] = None):
        self.translator = translator or Translator()
        self.language_code: Optional[str] = None
        self.filename: Optional[str] = None
        self.records_written = 0
        self._stream: Optional[BinaryIO] = None
        self._headers: Optional[list[str]] = None
        self._question_types: dict[tuple[str, Optional[str]], QuestionType] = {}

    def translate(self, key: str, language_code: Optional[str] = None) -> str:
        return self.translator.translate(key, language_code or self.language_code)

    @classmethod
    def download_name(cls, survey_id: int) -> str:
        return f"results-survey{survey_id}{cls.extension}"

    def init(self, survey: SurveyData, language_code: str, options: FormattingOptions,
             stream: Optional[BinaryIO] = None) -> None:
        """Prepare the sink.

        Args:
            survey (SurveyData): Survey being exported.
            language_code (str): Language of headings and answer texts.
            options (FormattingOptions): Export options.
            stream (BinaryIO|None): Destination for `display` output; stdout when omitted.
        """
        self.language_code = language_code
        if options.output == "file":
            self.filename = os.path.join(EXPORT_TEMP_DIR, secrets.token_hex(20) + self.extension)
        else:
            self._stream = stream if stream is not None else sys.stdout.buffer
        logger.debug("%s initialised for survey %s (%s)", type(self).__name__, survey.id,
                     self.filename or "display")

    # -- headings ---------------------------------------------------------

    def translate_heading(self, column: str, language_code: str) -> Optional[str]:
        if column.startswith(ATTRIBUTE_PREFIX):
            return column
        return self.translator.translate_heading(column, language_code)

    def abbreviated_heading(self, survey: SurveyData, field: FieldDescriptor) -> str:
        heading = strip_tags_full(field.question)[:15] + ".."
        if field.aid:
            heading += f" [{field.aid}]"
        return heading

    def full_heading(self, survey: SurveyData, field: FieldDescriptor, language_code: str) -> str:
        qtype = self._question_type(survey, field, language_code)
        return strip_tags_full(field.question) + qtype.sub_heading(code=False)

    def code_heading(self, survey: SurveyData, field: FieldDescriptor, language_code: str) -> str:
        qtype = self._question_type(survey, field, language_code)
        return strip_tags_full(field.title) + qtype.sub_heading(code=True)

    def heading(self, survey: SurveyData, column: str, language_code: str, options: FormattingOptions) -> str:
        value = self.translate_heading(column, language_code)
        if value is None:
            field = survey.field(column)
            if field is None or not field.is_question:
                logger.debug("No question for column %r, using the column name as heading", column)
                value = column
            elif options.heading_format == "abbreviated":
                value = self.abbreviated_heading(survey, field)
            elif options.heading_format == "full":
                value = self.full_heading(survey, field, language_code)
            else:
                value = self.code_heading(survey, field, language_code)
        if options.header_spaces_to_underscores:
            value = value.replace(" ", "_")
        return value

    # -- rows -------------------------------------------------------------

    def _question_type(self, survey: SurveyData, field: FieldDescriptor,
                       language_code: Optional[str] = None) -> QuestionType:
        language_code = language_code or self.language_code
        key = (field.fieldname, language_code)
        qtype = self._question_types.get(key)
        if qtype is None:
            qtype = question_type_for(field, survey, lambda text: self.translate(text, language_code))
            self._question_types[key] = qtype
        return qtype

    def should_output_response(self, response: dict[str, Any], options: FormattingOptions) -> bool:
        # a stored submitdate, whatever its value, marks the response complete
        submitted = response.get("submitdate") is not None
        if options.response_completion_state == "incomplete":
            return not submitted
        if options.response_completion_state == "filter":
            return submitted
        return True

    def render_value(self, survey: SurveyData, column: str, value: Any, options: FormattingOptions,
                     language_code: Optional[str] = None) -> str:
        field = survey.field(column)
        if field is None or not field.is_question:
            return strip_tags_full(value)
        qtype = self._question_type(survey, field, language_code)
        if options.answer_format == "long":
            return qtype.render_full(value, options)
        if options.answer_format == "short":
            return qtype.render_short(value, options)
        raise _invalid_answer_format(options)

    def write(self, survey: SurveyData, language_code: str, options: FormattingOptions,
              output_headers: bool = True) -> None:
        """Write the responses currently loaded in `survey`.

        Headings are computed when `output_headers` is set (the first batch)
        and reused for every later batch.
        """
        if output_headers:
            self._headers = [self.heading(survey, c, language_code, options) for c in options.selected_columns]
        headers = self._headers or []
        for response in survey.responses:
            if not self.should_output_response(response, options):
                continue
            values = [self.render_value(survey, c, response.get(c), options, language_code)
                      for c in options.selected_columns]
            self.output_record(headers, values, options)
            self.records_written += 1

    def output_record(self, headers: list[str], values: list[str], options: FormattingOptions) -> None:
        raise NotImplementedError

    def close(self) -> Optional[str]:
        """Finalize the output. Returns the file path for `file` output."""
        raise NotImplementedError

    def _release(self) -> None:
        pass

    def abort(self) -> None:
        """Release the sink without finalizing it and delete a partial file."""
        try:
            self._release()
        finally:
            if self.filename and os.path.exists(self.filename):
                os.remove(self.filename)
                logger.info("Removed partial export file %s", self.filename)


class CsvWriter(Writer):
    extension = ".csv"
    media_type = "text/csv"
    separator = ","

    def init(self, survey, language_code, options, stream=None):
        super().init(survey, language_code, options, stream)
        if self.filename:
            self._handle = open(self.filename, "w", newline="", encoding="utf-8")
        else:
            self._handle = io.TextIOWrapper(self._stream, encoding="utf-8", newline="", write_through=True)
        self._csv = csv.writer(self._handle, delimiter=self.separator, lineterminator="\n")
        self._has_output_header = False

    def _write_header(self, headers):
        self._csv.writerow(headers)
        self._has_output_header = True

    def output_record(self, headers, values, options):
        if not self._has_output_header:
            self._write_header(headers)
        self._csv.writerow(values)

    def close(self):
        if not self._has_output_header and self._headers:
            self._write_header(self._headers)
        self._release()
        return self.filename

    def _release(self):
        if self._handle is None:
            return
        if self.filename:
            self._handle.close()
        else:
            # leave the caller's stream open
            self._handle.flush()
            self._handle.detach()
        self._handle = None


class DocWriter(Writer):
    extension = ".docx"
    media_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    separator = "\t"

    def init(self, survey, language_code, options, stream=None):
        super().init(survey, language_code, options, stream)
        self.document = Document()
        self._is_beginning = True

    @staticmethod
    def docx_text(value: str) -> str:
        """Text without the control characters XML cannot hold."""
        return ILLEGAL_CHARACTERS_RE.sub("", value)

    def output_record(self, headers, values, options):
        if options.answer_format == "short":
            # values only, no headings
            self.document.add_paragraph(self.docx_text(self.separator.join(values)))
        elif options.answer_format == "long":
            if self._is_beginning:
                self._is_beginning = False
            else:
                self.document.add_page_break()
            table = self.document.add_table(rows=1, cols=2)
            table.style = "Table Grid"
            title_cells = table.rows[0].cells
            title = title_cells[0].merge(title_cells[1])
            title.text = self.translate("New Record")
            title.paragraphs[0].runs[0].font.bold = True
            for header, value in zip(headers, values):
                cells = table.add_row().cells
                cells[0].text = self.docx_text(header)
                cells[1].text = self.docx_text(value)
        else:
            raise _invalid_answer_format(options)

    def close(self):
        self.document.save(self.filename or self._stream)
        self._release()
        return self.filename

    def _release(self):
        self.document = None


class ExcelWriter(Writer):
    extension = ".xlsx"
    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def init(self, survey, language_code, options, stream=None):
        super().init(survey, language_code, options, stream)
        self.workbook = Workbook(write_only=True)
        self.current_sheet = self.workbook.create_sheet(self.sheet_name(survey, language_code))
        self._has_output_header = False

    @staticmethod
    def sheet_name(survey: SurveyData, language_code: str) -> str:
        """Sheet title from the survey title, without characters Excel rejects, max 31 chars."""
        name = re.sub(r"[*:/\\?\[\]]", " ", survey.title(language_code))[:31].strip()
        return name or f"survey_{survey.id}"

    @staticmethod
    def excel_escape(value: str) -> str:
        value = ILLEGAL_CHARACTERS_RE.sub("", value)
        # a leading "=" would make the cell a formula
        if value.startswith("="):
            value = f'"{value}"'
        return value

    def _write_header(self, headers):
        self.current_sheet.append([self.excel_escape(h).replace("?", "-") for h in headers])
        self._has_output_header = True

    def output_record(self, headers, values, options):
        if not self._has_output_header:
            self._write_header(headers)
        self.current_sheet.append([self.excel_escape(v) for v in values])

    def close(self):
        if not self._has_output_header and self._headers:
            self._write_header(self._headers)
        self.workbook.save(self.filename or self._stream)
        self._release()
        return self.filename

    def _release(self):
        self.workbook = None
        self.current_sheet = None


class PdfWriter(Writer):
    extension = ".pdf"
    media_type = "application/pdf"
    margin = 15 * mm

    def init(self, survey, language_code, options, stream=None):
        super().init(survey, language_code, options, stream)
        self.pagesize = landscape(A4) if PDF_ORIENTATION == "L" else A4
        styles = getSampleStyleSheet()
        self.styles = {
            "title": styles["Title"],
            "heading": styles["Heading2"],
            "label": ParagraphStyle("Label", parent=styles["Normal"], fontName="Helvetica-Bold",
                                    fontSize=PDF_FONT_SIZE, leading=PDF_FONT_SIZE * 1.3),
            "body": ParagraphStyle("Body", parent=styles["Normal"], fontSize=PDF_FONT_SIZE,
                                   leading=PDF_FONT_SIZE * 1.3, spaceAfter=PDF_FONT_SIZE / 2),
        }
        self.survey_name = survey.title(language_code)
        self.row_counter = 0
        self.story = [self._paragraph(f"PDF export {datetime.now():%Y.%m.%d-%H:%M}", "body"),
                      self._paragraph(self.survey_name, "title")]
        description = strip_tags_full(survey.description(language_code))
        if description:
            self.story.append(self._paragraph(description, "body"))

    def _paragraph(self, text: str, style: str) -> Paragraph:
        return Paragraph(escape(text).replace("\n", "<br/>"), self.styles[style])

    def output_record(self, headers, values, options):
        self.row_counter += 1
        if options.answer_format == "short":
            self.story.append(self._paragraph(self.translate("New Record"), "heading"))
            self.story.append(self._paragraph(" | ".join(values), "body"))
        elif options.answer_format == "long":
            if self.row_counter != 1:
                self.story.append(PageBreak())
            banner = Table([[f"{self.translate('NEW RECORD')} {self.row_counter}"]],
                           colWidths=[self.pagesize[0] - 2 * self.margin])
            banner.setStyle(TableStyle([("BOX", (0, 0), (-1, -1), 1, colors.black)]))
            self.story.append(banner)
            for header, value in zip(headers, values):
                self.story.append(self._paragraph(strip_tags_full(header), "label"))
                self.story.append(self._paragraph(strip_tags_full(value), "body"))
        else:
            raise _invalid_answer_format(options)

    def close(self):
        doc = SimpleDocTemplate(self.filename or self._stream, pagesize=self.pagesize,
                                leftMargin=self.margin, rightMargin=self.margin,
                                title=self.survey_name)
        doc.build(self.story)
        self._release()
        return self.filename

    def _release(self):
        self.story = []


WRITERS: dict[str, type[Writer]] = {
    "csv": CsvWriter,
    "doc": DocWriter,
    "xls": ExcelWriter,
    "pdf": PdfWriter,
}


def writer_for(export_format: Optional[str]) -> type[Writer]:
    """Writer class for a format name; unknown names export CSV."""
    return WRITERS.get((export_format or "").lower(), CsvWriter)
