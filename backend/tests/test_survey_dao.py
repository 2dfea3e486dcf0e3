import pytest
from errors import ExportError
from models import Question, QuestionGroup, Survey, SurveyLanguageSetting
from survey_dao import SurveyDao

def test_load_structure(db, sample_survey):
    s = SurveyDao(db).load_survey_by_id(sample_survey.sid)
    assert s.id == sample_survey.sid
    assert s.language == "en"
    assert [q.title for q in s.questions_in_group()] == ["Q1", "Q2", "Q3", "Q4"]
    assert [q.title for q in s.sub_questions(sample_survey.sid * 100 + 3).values()] == ["SQ001", "SQ002"]
    assert s.answer_options(sample_survey.sid * 100 + 1)["A1"].answer == "Very satisfied"
    assert s.title("en") == "Customer Feedback: 2024/Q1 [draft]"
    assert [t["firstname"] for t in s.tokens_matching("tokA")] == ["Ann"]
    assert s.responses == []
    assert list(s.field_map) == list(sample_survey.field_map)

@pytest.mark.parametrize("bad", [None, "", "abc", 0, -3, 999999])
def test_load_structure_rejects_bad_ids(db, bad):
    with pytest.raises(ExportError):
        SurveyDao(db).load_survey_by_id(bad)

def test_load_results_in_windows(db, bulk_survey):
    dao = SurveyDao(db)
    s = dao.load_survey_by_id(bulk_survey.sid)
    assert s.tokens == []
    assert dao.load_survey_results(s, 100, 0) == 100
    assert [r["id"] for r in s.responses] == list(range(1, 101))
    assert dao.load_survey_results(s, 100, 200) == 50
    assert [r["id"] for r in s.responses] == list(range(201, 251))
    assert dao.load_survey_results(s, 100, 250) == 0
    assert s.responses == []
    assert dao.load_survey_results(s, 0, 0) == 0

def test_load_results_joins_token_columns(db, sample_survey):
    dao = SurveyDao(db)
    s = dao.load_survey_by_id(sample_survey.sid)
    assert dao.load_survey_results(s, 10, 0) == 3
    by_id = {r["id"]: r for r in s.responses}
    assert by_id[1]["firstname"] == "Ann" and by_id[1]["attribute_1"] == "VIP"
    assert by_id[2]["email"] == "bob@example.com"
    # response without a token is kept by the outer join
    assert by_id[3]["token"] is None and by_id[3]["firstname"] is None
    assert by_id[1]["token"] == "tokA"

def test_missing_response_table_is_an_error(db, sample_survey):
    dao = SurveyDao(db)
    s = dao.load_survey_by_id(sample_survey.sid)
    s.id = 424242
    with pytest.raises(ExportError):
        dao.load_survey_results(s, 10, 0)

def test_structure_rows_commit_together_in_any_add_order(db):
    # children added before their survey still insert after it
    db.add(Question(qid=5550101, language="en", sid=5550, gid=55501, type="T", title="Q1", question="Hi"))
    db.add(QuestionGroup(gid=55501, language="en", sid=5550, group_name="G", group_order=1))
    db.add(SurveyLanguageSetting(surveyls_survey_id=5550, surveyls_language="en", surveyls_title="Ordered"))
    db.add(Survey(sid=5550, language="en"))
    db.commit()
    assert [q.title for q in db.get(Survey, 5550).questions] == ["Q1"]
    s = SurveyDao(db).load_survey_by_id(5550)
    assert s.title("en") == "Ordered"
    assert [q.title for q in s.questions_in_group()] == ["Q1"]
