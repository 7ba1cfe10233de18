from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging
from shared.models import (
    Base, User, AppConfig, InspectionTemplate, Inspection, Assignment
)

logger = logging.getLogger(__name__)
db = SQLAlchemy(model_class=Base)


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(db_conn, conn_record):
    """Turn on FK enforcement for SQLite connections (off by default)."""
    module = type(db_conn).__module__
    if 'sqlite' not in module:
        return
    cursor = db_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON;")
    finally:
        cursor.close()
