import logging

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event, inspect
from sqlalchemy.engine import Engine
from sqlite3 import Connection as SQLite3Connection

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Pool options SQLite's engine rejects
POOL_OPTIONS = {
    'pool_pre_ping': True,
    'pool_recycle': 280,
    'pool_timeout': 30,
}


def engine_options_for(db_uri, options=None):
    """Engine options for ``db_uri``, keeping any caller-set values."""
    options = dict(options or {})
    if db_uri.startswith('sqlite'):
        for key in POOL_OPTIONS:
            options.pop(key, None)
    else:
        # Hosted Postgres drops idle SSL connections
        for key, value in POOL_OPTIONS.items():
            options.setdefault(key, value)
    return options


def init_db(app):
    db.init_app(app)
    migrate.init_app(app, db)


def create_missing_tables():
    """Create tables absent from the database; migrations handle the rest."""
    existing_tables = set(inspect(db.engine).get_table_names())
    missing = [name for name in db.metadata.tables if name not in existing_tables]
    if missing:
        db.create_all()
    logger.info(
        'Database tables checked',
        extra={
            'event': 'db_schema_sync',
            'tables': missing,
            'mode': 'initial' if missing else 'noop',
        },
    )
    return missing


@event.listens_for(Engine, "connect")
def _enable_sqlite_fk(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, SQLite3Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()
