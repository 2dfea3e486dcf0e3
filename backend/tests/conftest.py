import os, tempfile, itertools
from datetime import datetime
from types import SimpleNamespace
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from main import app
from db import Base, get_db
from fieldmap import create_field_map
from models import Survey, SurveyLanguageSetting, QuestionGroup, Question, AnswerOption
from security import verify_admin
from survey_tables import create_response_table, create_token_table

_survey_ids = itertools.count(100)

@pytest.fixture(scope="session")
def tmp_db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return path

@pytest.fixture(scope="session")
def test_engine(tmp_db_path):
    url = f"sqlite:///{tmp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False})

    # SQLite force foreign key constraints
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return engine

@pytest.fixture(scope="session")
def TestingSessionLocal(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

@pytest.fixture(scope="session", autouse=True)
def override_di(TestingSessionLocal):
    def _get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[verify_admin] = lambda: None

@pytest.fixture(autouse=True)
def export_tmp_dir(tmp_path, monkeypatch):
    # export files land in a per-test directory
    out = tmp_path / "exports"
    out.mkdir()
    monkeypatch.setattr("writers.EXPORT_TEMP_DIR", str(out))
    return out

@pytest.fixture
def db(TestingSessionLocal):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client():
    return TestClient(app)


def create_survey(session, engine, *, title="Survey", description="", questions=(), answers=(),
                  responses=None, tokens=None, token_attributes=(), **settings):
    """Insert a survey structure, create its response (and token) table and fill them.

    `questions` are dicts with qid/parent_qid/type/title/question/other/question_order/scale_id;
    stored qids are offset by sid*100 so surveys never share ids. `responses` is a
    function of the field name helper `field(qid, suffix="")` returning the rows.
    """
    sid = next(_survey_ids)
    gid = sid * 10 + 1
    field = lambda qid, suffix="": f"{sid}X{gid}X{sid * 100 + qid}{suffix}"

    session.add(Survey(sid=sid, language="en", **settings))
    session.flush()
    session.add(SurveyLanguageSetting(surveyls_survey_id=sid, surveyls_language="en",
                                      surveyls_title=title, surveyls_description=description))
    session.add(QuestionGroup(gid=gid, language="en", sid=sid, group_name="G1", group_order=1))
    for q in questions:
        session.add(Question(
            qid=sid * 100 + q["qid"], language="en", sid=sid, gid=gid,
            parent_qid=sid * 100 + q["parent_qid"] if q.get("parent_qid") else 0,
            type=q.get("type", "T"), title=q["title"], question=q.get("question", ""),
            other=q.get("other", False), question_order=q.get("question_order", q["qid"]),
            scale_id=q.get("scale_id", 0),
        ))
    for a in answers:
        session.add(AnswerOption(qid=sid * 100 + a["qid"], code=a["code"], language="en",
                                 scale_id=a.get("scale_id", 0), answer=a["answer"],
                                 sortorder=a.get("sortorder", 0)))
    session.commit()

    qrows = session.query(Question).filter(Question.sid == sid).order_by(Question.question_order).all()
    arows = session.query(AnswerOption).filter(AnswerOption.qid.in_([q.qid for q in qrows] or [0])).all()
    fmap = create_field_map(sid, qrows, arows,
                            anonymized=settings.get("anonymized", False), datestamp=settings.get("datestamp", False),
                            ipaddr=settings.get("ipaddr", False), refurl=settings.get("refurl", False))
    table = create_response_table(engine, sid, fmap)
    token_table = create_token_table(engine, sid, token_attributes) if tokens is not None else None
    rows = responses(field) if responses else []
    with engine.begin() as conn:
        if rows:
            conn.execute(table.insert(), rows)
        if tokens:
            conn.execute(token_table.insert(), list(tokens))
    return SimpleNamespace(sid=sid, gid=gid, field=field, field_map=fmap)


@pytest.fixture
def sample_survey(db, test_engine):
    """Four questions, two tokens, three responses (ids 1 and 3 submitted, 2 incomplete)."""
    questions = [
        {"qid": 1, "type": "L", "title": "Q1", "question": "<b>How satisfied are you overall?</b>", "other": True},
        {"qid": 2, "type": "Y", "title": "Q2", "question": "Would you recommend us?"},
        {"qid": 3, "type": "M", "title": "Q3", "question": "Which channels?"},
        {"qid": 31, "parent_qid": 3, "type": "T", "title": "SQ001", "question": "Email", "question_order": 1},
        {"qid": 32, "parent_qid": 3, "type": "T", "title": "SQ002", "question": "Phone", "question_order": 2},
        {"qid": 4, "type": "T", "title": "Q4", "question": "Any comments?"},
    ]
    answers = [
        {"qid": 1, "code": "A1", "answer": "Very satisfied", "sortorder": 1},
        {"qid": 1, "code": "A2", "answer": "<em>Not</em> satisfied", "sortorder": 2},
    ]

    def responses(f):
        return [
            {"token": "tokA", "submitdate": datetime(2024, 1, 1, 10, 0), "lastpage": 2, "startlanguage": "en",
             f(1): "A1", f(1, "other"): None, f(2): "Y", f(3, "SQ001"): "Y", f(3, "SQ002"): "",
             f(4): 'Great, "really" good\nthanks'},
            {"token": "tokB", "submitdate": None, "lastpage": 1, "startlanguage": "en",
             f(1): "-oth-", f(1, "other"): "Radio", f(2): "N", f(3, "SQ001"): None, f(3, "SQ002"): None,
             f(4): "=CMD()"},
            {"token": None, "submitdate": datetime(2024, 1, 3, 9, 30), "lastpage": 2, "startlanguage": "en",
             f(1): "A2", f(1, "other"): None, f(2): "Y", f(3, "SQ001"): "", f(3, "SQ002"): "Y",
             f(4): "<i>fine</i>, thanks"},
        ]

    s = create_survey(
        db, test_engine, title="Customer Feedback: 2024/Q1 [draft]", description="<p>Annual survey</p>",
        questions=questions, answers=answers, responses=responses,
        tokens=[
            {"token": "tokA", "firstname": "Ann", "lastname": "Lee", "email": "ann@example.com", "attribute_1": "VIP"},
            {"token": "tokB", "firstname": "Bob", "lastname": "Ray", "email": "bob@example.com", "attribute_1": ""},
        ],
        token_attributes=["attribute_1"],
    )
    f = s.field
    s.q1, s.q1other, s.q2, s.q4 = f(1), f(1, "other"), f(2), f(4)
    s.q3a, s.q3b = f(3, "SQ001"), f(3, "SQ002")
    return s


@pytest.fixture
def bulk_survey(db, test_engine):
    """One free-text question, 250 responses; every third one is incomplete. No token table."""
    def responses(f):
        return [
            {"submitdate": None if i % 3 == 0 else datetime(2024, 2, 1), "startlanguage": "en", f(1): f"answer {i}"}
            for i in range(1, 251)
        ]
    s = create_survey(db, test_engine, title="Bulk",
                      questions=[{"qid": 1, "type": "T", "title": "FREE", "question": "Say something"}],
                      responses=responses)
    s.q1 = s.field(1)
    return s
