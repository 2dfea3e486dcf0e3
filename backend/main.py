import os
import logging
from fastapi import BackgroundTasks, FastAPI, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from db import Base, engine, get_db
from errors import ExportError
from exporter import export_survey
from models import Survey
from schemas import ExportRequest, FieldOut
from security import verify_admin
from survey_dao import SurveyDao
from writers import writer_for

logger = logging.getLogger(__name__)

app = FastAPI(title="Survey Results Export API")

origins = os.getenv("ORIGINS", "http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Base.metadata.create_all(bind=engine)

def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass

@app.get("/health")
def health():
    """Basic readiness probe.

    Returns:
        dict: {"ok": True}
    """
    return {"ok": True}

# ------------------------
# Admin: exportable columns
# ------------------------
@app.get("/admin/surveys/{survey_id}/columns", response_model=list[FieldOut], dependencies=[Depends(verify_admin)])
def survey_columns(survey_id: int, db: Session = Depends(get_db)):
    """List the columns that can be selected for export, in column order.

    Args:
        survey_id (int): Survey ID.
        db (Session): DB session.

    Returns:
        list[FieldOut]: [{fieldname, kind, type, title, question}]

    Raises:
        HTTPException: 404 if survey not found.
    """
    try:
        survey = SurveyDao(db).load_survey_by_id(survey_id)
    except ExportError as e:
        raise HTTPException(404, str(e))
    return list(survey.field_map.values())

# ------------------------
# Admin: export responses
# ------------------------
@app.post("/admin/surveys/{survey_id}/export", dependencies=[Depends(verify_admin)])
def export_responses(survey_id: int, body: ExportRequest, background_tasks: BackgroundTasks,
                     db: Session = Depends(get_db)):
    """Export survey responses as csv, doc, xls or pdf and send the file.

    The export is always written to a temporary file, which is deleted once
    the response has been sent.

    Args:
        survey_id (int): Survey ID.
        body (ExportRequest): {language?, format, options}
        background_tasks (BackgroundTasks): Deletes the file after sending.
        db (Session): DB session.

    Returns:
        FileResponse: attachment `results-survey<id>.<ext>`.

    Raises:
        HTTPException: 404 if survey not found; 400 for any other export error.
    """
    survey = db.get(Survey, survey_id)
    if not survey:
        raise HTTPException(404, "Survey not found")
    options = body.options.model_copy(update={"output": "file"})
    language = body.language or survey.language
    writer_cls = writer_for(body.format)
    try:
        path = export_survey(db, survey_id, language, body.format, options)
    except ExportError as e:
        logger.warning("Export of survey %s rejected: %s", survey_id, e)
        raise HTTPException(400, str(e))
    background_tasks.add_task(_remove_file, path)
    return FileResponse(path, media_type=writer_cls.media_type, filename=writer_cls.download_name(survey_id))
