# schemas.py
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, Tuple, Literal

ExportFormat = Literal["csv", "doc", "xls", "pdf"]

class FormattingOptions(BaseModel):
    """Caller-selected export options; never modified during an export."""
    model_config = ConfigDict(frozen=True)

    response_min_record: int = Field(1, ge=1)
    response_max_record: Optional[int] = Field(None, ge=1)   # None = all records
    selected_columns: Tuple[str, ...]
    response_completion_state: Literal["show", "incomplete", "filter"] = "show"
    heading_format: Literal["abbreviated", "full", "code"] = "code"
    header_spaces_to_underscores: bool = False
    answer_format: Literal["short", "long"] = "short"
    y_value: Optional[str] = None   # replaces "Y" in short answers when set
    n_value: Optional[str] = None   # replaces "N" in short answers when set
    output: Literal["display", "file"] = "file"

    @field_validator("response_max_record", mode="before")
    @classmethod
    def _all_records(cls, v):
        if isinstance(v, str) and v.strip().lower() == "all":
            return None
        return v

    @field_validator("selected_columns")
    @classmethod
    def _columns_not_empty(cls, v):
        if not v:
            raise ValueError("At least one column must be selected for export.")
        return v

    @model_validator(mode="after")
    def _range_ordered(self):
        if self.response_max_record is not None and self.response_min_record > self.response_max_record:
            raise ValueError("response_min_record must not exceed response_max_record")
        return self

class ExportRequest(BaseModel):
    language: Optional[str] = None     # defaults to the survey's base language
    format: str = "csv"
    options: FormattingOptions

class FieldOut(BaseModel):
    fieldname: str
    kind: str
    type: str
    title: Optional[str] = None
    question: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
