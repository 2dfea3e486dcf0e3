from sqlalchemy import Column, Integer, String, Text, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from db import Base

# Survey structure tables. Responses and tokens live in per-survey tables
# (survey_<sid>, tokens_<sid>), see survey_tables.py.

class Survey(Base):
    __tablename__ = "surveys"
    sid = Column(Integer, primary_key=True, autoincrement=False)
    language = Column(String(20), nullable=False, default="en")
    anonymized = Column(Boolean, default=False)
    datestamp = Column(Boolean, default=False)
    ipaddr = Column(Boolean, default=False)
    refurl = Column(Boolean, default=False)
    active = Column(Boolean, default=False)
    language_settings = relationship("SurveyLanguageSetting", back_populates="survey", cascade="all, delete-orphan")
    groups = relationship("QuestionGroup", back_populates="survey", cascade="all, delete-orphan")
    questions = relationship("Question", back_populates="survey", cascade="all, delete-orphan")

class SurveyLanguageSetting(Base):
    __tablename__ = "surveys_languagesettings"
    surveyls_survey_id = Column(Integer, ForeignKey("surveys.sid", ondelete="CASCADE"), primary_key=True)
    surveyls_language = Column(String(20), primary_key=True)
    surveyls_title = Column(String(200), nullable=False, default="")
    surveyls_description = Column(Text, nullable=True)
    survey = relationship("Survey", back_populates="language_settings")

class QuestionGroup(Base):
    __tablename__ = "groups"
    gid = Column(Integer, primary_key=True, autoincrement=False)
    language = Column(String(20), primary_key=True)
    sid = Column(Integer, ForeignKey("surveys.sid", ondelete="CASCADE"), index=True, nullable=False)
    group_name = Column(String(100), nullable=False, default="")
    group_order = Column(Integer, nullable=False, default=0)
    survey = relationship("Survey", back_populates="groups")

class Question(Base):
    __tablename__ = "questions"
    qid = Column(Integer, primary_key=True, autoincrement=False)
    language = Column(String(20), primary_key=True)
    parent_qid = Column(Integer, nullable=False, default=0, index=True)
    sid = Column(Integer, ForeignKey("surveys.sid", ondelete="CASCADE"), index=True, nullable=False)
    gid = Column(Integer, nullable=False, default=0)
    type = Column(String(1), nullable=False, default="T")
    title = Column(String(20), nullable=False, default="")
    question = Column(Text, nullable=False, default="")
    other = Column(Boolean, default=False)
    question_order = Column(Integer, nullable=False, default=0)
    scale_id = Column(Integer, nullable=False, default=0)
    survey = relationship("Survey", back_populates="questions")

class AnswerOption(Base):
    __tablename__ = "answers"
    qid = Column(Integer, primary_key=True, autoincrement=False)
    code = Column(String(5), primary_key=True)
    language = Column(String(20), primary_key=True)
    scale_id = Column(Integer, primary_key=True, default=0)
    answer = Column(Text, nullable=False, default="")
    sortorder = Column(Integer, nullable=False, default=0)
