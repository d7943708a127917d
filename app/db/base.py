# app/db/base.py
# Import every model here so Base.metadata knows all tables (create_all, alembic).
from app.db.base_class import Base  # noqa

from app.models.student import Student  # noqa
from app.models.submission import Submission  # noqa
from app.models.evaluation_log import EvaluationLog  # noqa
from app.models.revision import Revision  # noqa
