# Field map: response table column name -> what the column holds.
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

META = "meta"
ANSWER = "answer"
OTHER = "other"
COMMENT = "comment"
FILECOUNT = "filecount"

# question types stored in a single response column
SINGLE_COLUMN_TYPES = set("L!OYG5NSTUDI*")
# arrays with one column per sub-question
ARRAY_TYPES = set("FABCEHKQ")
# arrays with one column per (row, column) sub-question pair
TWO_AXIS_TYPES = set(":;")
LIST_TYPES = set("L!")


@dataclass(frozen=True)
class FieldDescriptor:
    fieldname: str
    kind: str = META
    type: str = ""
    sid: Optional[int] = None
    gid: Optional[int] = None
    qid: Optional[int] = None
    aid: Optional[str] = None
    title: Optional[str] = None
    question: Optional[str] = None
    scale_id: Optional[int] = None
    subquestion: Optional[str] = None
    subquestion1: Optional[str] = None
    subquestion2: Optional[str] = None

    @property
    def is_question(self) -> bool:
        return self.kind != META


def _meta_fields(anonymized: bool, datestamp: bool, ipaddr: bool, refurl: bool) -> list[str]:
    names = ["id"]
    if not anonymized:
        names.append("token")
    names += ["submitdate", "lastpage", "startlanguage"]
    if datestamp:
        names += ["datestamp", "startdate"]
    if ipaddr:
        names.append("ipaddr")
    if refurl:
        names.append("refurl")
    return names


def create_field_map(
    sid: int,
    questions: Iterable,
    answers: Iterable = (),
    *,
    anonymized: bool = False,
    datestamp: bool = False,
    ipaddr: bool = False,
    refurl: bool = False,
) -> dict[str, FieldDescriptor]:
    """Build the ordered field map of a survey.

    Args:
        sid (int): Survey id.
        questions (Iterable): Question records (top level and sub-questions) in
            group order, then question order.
        answers (Iterable): Answer option records; only used to size ranking questions.
        anonymized, datestamp, ipaddr, refurl (bool): Survey settings deciding
            which meta columns exist.

    Returns:
        dict[str, FieldDescriptor]: Column name -> descriptor, in column order.
    """
    questions = list(questions)
    answers = list(answers)
    fmap: dict[str, FieldDescriptor] = {}
    for name in _meta_fields(anonymized, datestamp, ipaddr, refurl):
        fmap[name] = FieldDescriptor(fieldname=name)

    children: dict[int, list] = {}
    for q in questions:
        if q.parent_qid:
            children.setdefault(q.parent_qid, []).append(q)

    for q in questions:
        if q.parent_qid:
            continue
        base = f"{sid}X{q.gid}X{q.qid}"

        def add(suffix: str, kind: str = ANSWER, **extra) -> None:
            name = base + suffix
            fmap[name] = FieldDescriptor(
                fieldname=name, kind=kind, type=q.type, sid=sid, gid=q.gid,
                qid=q.qid, title=q.title, question=q.question, **extra,
            )

        subs = sorted(children.get(q.qid, []), key=lambda s: s.question_order)
        rows = [s for s in subs if s.scale_id == 0]
        cols = [s for s in subs if s.scale_id == 1]

        if q.type in SINGLE_COLUMN_TYPES:
            add("")
            if q.type in LIST_TYPES and q.other:
                add("other", OTHER, aid="other")
            if q.type == "O":
                add("comment", COMMENT, aid="comment")
        elif q.type == "M":
            for s in rows:
                add(s.title, aid=s.title, subquestion=s.question)
            if q.other:
                add("other", OTHER, aid="other")
        elif q.type == "P":
            for s in rows:
                add(s.title, aid=s.title, subquestion=s.question)
                add(s.title + "comment", COMMENT, aid=s.title + "comment", subquestion=s.question)
            if q.other:
                add("other", OTHER, aid="other")
                add("othercomment", COMMENT, aid="othercomment")
        elif q.type in ARRAY_TYPES:
            for s in rows:
                add(s.title, aid=s.title, subquestion=s.question)
        elif q.type in TWO_AXIS_TYPES:
            for y in rows:
                for x in cols:
                    code = f"{y.title}_{x.title}"
                    add(code, aid=code, subquestion1=y.question, subquestion2=x.question)
        elif q.type == "1":
            for s in rows:
                for scale in (0, 1):
                    code = f"{s.title}#{scale}"
                    add(code, aid=code, scale_id=scale, subquestion=s.question)
        elif q.type == "R":
            count = len({a.code for a in answers if a.qid == q.qid})
            for n in range(1, count + 1):
                add(str(n), aid=str(n))
        elif q.type == "|":
            add("")
            add("_filecount", FILECOUNT, aid="filecount")
        # X (boilerplate) stores nothing
    return fmap
