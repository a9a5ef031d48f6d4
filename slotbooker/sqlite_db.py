import logging
import os
import sqlite3

from flask import current_app, g

from .errors import StorageError

logger = logging.getLogger(__name__)


def init_app(app):
    app.config["DATABASE_PATH"] = os.path.join(
        app.instance_path,
        app.config.get("DATABASE", "appointments.db"),
    )
    os.makedirs(app.instance_path, exist_ok=True)
    app.teardown_appcontext(close_db)


def _table_exists(db: sqlite3.Connection, table_name: str) -> bool:
    row = db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    ).fetchone()
    return row is not None


def _ensure_appointment_contact_columns(db: sqlite3.Connection) -> None:
    # Older databases predate the contact columns.
    if not _table_exists(db, "appointments"):
        return

    cols = {r["name"] for r in db.execute("PRAGMA table_info(appointments)").fetchall()}
    for column in ("email", "customer_name", "customer_phone"):
        if column not in cols:
            db.execute(f"ALTER TABLE appointments ADD COLUMN {column} TEXT")
    db.commit()


def _ensure_runtime_migrations(db: sqlite3.Connection) -> None:
    _ensure_appointment_contact_columns(db)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DATABASE_PATH"]
        try:
            g.db = sqlite3.connect(db_path, detect_types=sqlite3.PARSE_DECLTYPES)
            g.db.row_factory = sqlite3.Row
            _ensure_runtime_migrations(g.db)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database {db_path}") from e
    return g.db


def close_db(_e=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    """Create the tables from schema.sql. Safe to run more than once."""
    db = get_db()
    with current_app.open_resource("schema.sql") as f:
        db.executescript(f.read().decode("utf-8"))
    db.commit()


def query_db(query, args=(), one=False):
    try:
        cur = get_db().execute(query, args)
        rows = cur.fetchall()
        cur.close()
    except sqlite3.Error as e:
        raise StorageError("Query failed") from e
    return (rows[0] if rows else None) if one else rows


def _execute(query, args):
    db = get_db()
    try:
        cur = db.execute(query, args)
        db.commit()
    except sqlite3.Error as e:
        db.rollback()
        raise StorageError("Write failed") from e
    return cur


def execute_db(query, args=()):
    return _execute(query, args).lastrowid


def execute_db_count(query, args=()):
    """Like execute_db, but return the number of affected rows."""
    return _execute(query, args).rowcount
