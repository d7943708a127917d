# app/db/deps.py
from typing import Generator

from sqlalchemy.orm import Session

from app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()  # one session per request
    try:
        yield db
    finally:
        db.close()
