# Per-survey response and token tables. Their columns depend on the survey,
# so they are built with SQLAlchemy Core instead of ORM models.
from __future__ import annotations

from typing import Iterable

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, inspect
from sqlalchemy.engine import Engine

from fieldmap import FieldDescriptor

META_COLUMN_TYPES = {
    "token": lambda: String(36),
    "submitdate": DateTime,
    "lastpage": Integer,
    "startlanguage": lambda: String(20),
    "datestamp": DateTime,
    "startdate": DateTime,
    "ipaddr": Text,
    "refurl": Text,
}

TOKEN_COLUMNS = ("firstname", "lastname", "email", "token", "language", "completed")


def response_table_name(survey_id: int) -> str:
    return f"survey_{int(survey_id)}"


def token_table_name(survey_id: int) -> str:
    return f"tokens_{int(survey_id)}"


def table_exists(engine: Engine, name: str) -> bool:
    return inspect(engine).has_table(name)


def reflect_table(engine: Engine, name: str) -> Table:
    return Table(name, MetaData(), autoload_with=engine)


def create_response_table(engine: Engine, survey_id: int, field_map: dict[str, FieldDescriptor]) -> Table:
    """Create survey_<sid> with one column per field map entry."""
    columns = []
    for name, f in field_map.items():
        if name == "id":
            columns.append(Column("id", Integer, primary_key=True, autoincrement=True))
        elif not f.is_question:
            columns.append(Column(name, META_COLUMN_TYPES.get(name, Text)(), nullable=True))
        else:
            columns.append(Column(name, Text, nullable=True))
    table = Table(response_table_name(survey_id), MetaData(), *columns)
    table.create(engine, checkfirst=True)
    return table


def create_token_table(engine: Engine, survey_id: int, attributes: Iterable[str] = ()) -> Table:
    """Create tokens_<sid>; extra attribute columns are named attribute_<n>."""
    columns = [Column("tid", Integer, primary_key=True, autoincrement=True)]
    columns += [Column(name, String(320) if name == "email" else String(150), nullable=True) for name in TOKEN_COLUMNS]
    columns += [Column(name, String(255), nullable=True) for name in attributes]
    table = Table(token_table_name(survey_id), MetaData(), *columns)
    table.create(engine, checkfirst=True)
    return table
