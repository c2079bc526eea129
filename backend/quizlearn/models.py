from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Integer, JSON, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


class User(Base):
	__tablename__ = "users"
	id = Column(Integer, primary_key=True, index=True)
	first_name = Column(String(128), nullable=False)
	last_name = Column(String(128), nullable=False)
	email = Column(String(256), unique=True, index=True, nullable=False)
	password_hash = Column(String(256), nullable=False)
	is_admin = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT "jti"; deleting the row revokes the token
	session_id = Column(String(64), primary_key=True)
	user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Course(Base):
	__tablename__ = "courses"
	id = Column(Integer, primary_key=True, index=True)
	title = Column(String(256), nullable=False)
	description = Column(Text, nullable=False)
	price = Column(Float, default=0.0, nullable=False)
	creator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	topics = relationship("Topic", back_populates="course")


class Purchase(Base):
	__tablename__ = "purchases"
	__table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_purchase_user_course"),)
	id = Column(Integer, primary_key=True, index=True)
	user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
	course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	course = relationship("Course")


class Topic(Base):
	__tablename__ = "topics"
	id = Column(Integer, primary_key=True, index=True)
	title = Column(String(256), nullable=False)
	description = Column(Text, nullable=False)
	course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	course = relationship("Course", back_populates="topics")


class Quiz(Base):
	__tablename__ = "quizzes"
	id = Column(Integer, primary_key=True, index=True)
	# One quiz per topic
	topic_id = Column(Integer, ForeignKey("topics.id"), unique=True, index=True, nullable=False)
	course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
	questions = Column(JSON, nullable=False)  # [{"question", "options": [4], "correctAnswer"}]
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	topic = relationship("Topic")


class ScoreRecord(Base):
	__tablename__ = "score_records"
	id = Column(Integer, primary_key=True, index=True)
	user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
	quiz_id = Column(Integer, ForeignKey("quizzes.id"), index=True, nullable=False)
	topic_id = Column(Integer, ForeignKey("topics.id"), index=True, nullable=False)
	course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
	score = Column(Integer, nullable=False)
	total_questions = Column(Integer, nullable=False)
	answers = Column(JSON, nullable=False)  # [{"question", "selectedAnswer", "correctAnswer", "isCorrect"}]
	submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	topic = relationship("Topic")
	course = relationship("Course")
