# app/__init__.py
from app.db.session import engine
from app.db.base import Base


def init_db():
    # students, submissions, evaluation_logs, revisions
    Base.metadata.create_all(bind=engine)
