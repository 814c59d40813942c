import logging
import os
from datetime import timedelta

from SpendWise.database import engine_options_for

POSTGRES_SCHEME = 'postgres://'
POSTGRESQL_SCHEME = 'postgresql://'

logger = logging.getLogger(__name__)


def _normalize_db_uri(db_url):
    if db_url and db_url.startswith(POSTGRES_SCHEME):
        return db_url.replace(POSTGRES_SCHEME, POSTGRESQL_SCHEME, 1)
    return db_url


def load_config(app, overrides):
    if os.path.exists(os.path.join(os.path.dirname(__file__), 'custom_config.py')):
        app.config.from_object('SpendWise.custom_config')
    else:
        app.config.from_object('SpendWise.default_config')

    app.config.from_prefixed_env()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['PREFERRED_URL_SCHEME'] = 'https'

    db_url = (
        os.environ.get('DATABASE_URI_SUPABASE') or
        os.environ.get('DATABASE_URI_POSTGRES_LOCAL') or
        os.environ.get('DATABASE_URI_SQLITE') or
        app.config.get('SQLALCHEMY_DATABASE_URI')
    )
    if db_url:
        app.config['SQLALCHEMY_DATABASE_URI'] = _normalize_db_uri(db_url)
    else:
        logger.warning('No database URI configured', extra={'event': 'config_missing_db_uri'})

    # JWT Configuration
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=1)
    app.config['JWT_ACCESS_COOKIE_NAME'] = 'access_token'
    app.config["JWT_TOKEN_LOCATION"] = ["cookies", "headers"]

    is_production = app.config.get('ENV', os.environ.get('ENV', 'development')) == 'production'
    app.config["JWT_COOKIE_SECURE"] = is_production
    app.config["JWT_COOKIE_CSRF_PROTECT"] = is_production

    app.config['JWT_SECRET_KEY'] = app.config['SECRET_KEY']

    for key in overrides:
        app.config[key] = overrides[key]

    # Overrides may swap the URI for a postgres:// one
    final_db_uri = _normalize_db_uri(app.config.get('SQLALCHEMY_DATABASE_URI') or '')
    app.config['SQLALCHEMY_DATABASE_URI'] = final_db_uri

    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(
        final_db_uri, app.config.get("SQLALCHEMY_ENGINE_OPTIONS")
    )

    logger.info(
        'Configuration loaded',
        extra={
            'event': 'config_loaded',
            'database_backend': final_db_uri.split(':', 1)[0] if final_db_uri else None,
            'mail_enabled': bool(app.config.get('MAIL_HOST')),
        },
    )
