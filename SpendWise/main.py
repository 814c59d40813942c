import uuid
from datetime import datetime, timezone
from time import perf_counter

from dotenv import load_dotenv
from flask import Flask, jsonify, request, g
from flask_cors import CORS
from sqlalchemy import text

from SpendWise.config import load_config
from SpendWise.controllers import setup_jwt
from SpendWise.database import create_missing_tables, db, init_db
from SpendWise.logging_config import configure_logging
from SpendWise.services import init_credential_store
from SpendWise.views import views

def add_views(app):
    for view in views:
        app.register_blueprint(view)

def create_app(overrides=None, credential_store=None):
    # Load environment variables from .env if present
    load_dotenv()
    app = Flask(__name__)
    load_config(app, overrides or {})

    configure_logging(app)
    app.logger.info(
        'Flask application configured',
        extra={
            'event': 'app_boot',
            'environment': app.config.get('ENV'),
            'debug': app.debug,
            'service': app.config.get('SERVICE_NAME', 'spendwise'),
        },
    )

    @app.before_request
    def _structured_request_logging() -> None:
        g.request_timer = perf_counter()
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        app.logger.info(
            'Incoming request',
            extra={
                'event': 'request_started',
                'request_id': g.request_id,
                'method': request.method,
                'path': request.path,
                'remote_addr': request.remote_addr,
            },
        )

    @app.after_request
    def _structured_response_logging(response):
        duration_ms = None
        if hasattr(g, 'request_timer'):
            duration_ms = round((perf_counter() - g.request_timer) * 1000, 2)
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers['X-Request-ID'] = request_id
        app.logger.info(
            'Completed request',
            extra={
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.path,
                'status_code': response.status_code,
                'duration_ms': duration_ms,
            },
        )
        return response

    @app.teardown_request
    def _structured_request_teardown(exc):
        if exc is not None:
            app.logger.error(
                'Unhandled request exception',
                exc_info=exc,
                extra={
                    'event': 'request_exception',
                    'request_id': getattr(g, 'request_id', None),
                    'method': getattr(request, 'method', None),
                    'path': getattr(request, 'path', None),
                },
            )

    CORS(app, resources={
        r"/api/*": {
            "origins": app.config.get('CORS_ORIGINS', []),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-CSRF-TOKEN", "X-Request-ID"],
            "supports_credentials": True
        }
    })

    add_views(app)
    init_db(app)
    jwt = setup_jwt(app)
    init_credential_store(app, credential_store)
    with app.app_context():
        create_missing_tables()

    @app.get("/healthcheck")
    def healthcheck():
        checks = {}
        overall_ok = True
        checks['app'] = {'ok': True, 'time': datetime.now(timezone.utc).isoformat()}

        if app.config.get('SECRET_KEY'):
            checks['config'] = {'ok': True}
        else:
            checks['config'] = {'ok': False, 'missing': ['SECRET_KEY']}
            overall_ok = False

        try:
            db.session.execute(text("SELECT 1"))
            checks['db'] = {'ok': True}
        except Exception as e:
            db.session.rollback()
            checks['db'] = {'ok': False, 'error': str(e)}
            overall_ok = False

        # Reset links are logged instead of mailed without a host; not fatal
        checks['mail'] = {'ok': True, 'enabled': bool(app.config.get('MAIL_HOST'))}

        status_code = 200 if overall_ok else 503
        app.logger.info(
            'Healthcheck completed',
            extra={
                'event': 'healthcheck_completed',
                'overall_ok': overall_ok,
                'checks': checks,
                'request_id': getattr(g, 'request_id', None),
            },
        )
        return jsonify(status='ok' if overall_ok else 'fail', checks=checks), status_code

    @jwt.invalid_token_loader
    @jwt.unauthorized_loader
    def custom_unauthorized_response(error):
        app.logger.warning(
            'Unauthorized access attempt',
            extra={
                'event': 'security_auth_failure',
                'reason': error,
                'path': request.path,
                'request_id': getattr(g, 'request_id', None),
            },
        )
        return jsonify(success=False, message="Authentication required", errors={"auth": error}), 401

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_data):
        app.logger.info(
            'JWT token expired',
            extra={
                'event': 'security_token_expired',
                'identity': jwt_data.get('sub') if isinstance(jwt_data, dict) else None,
                'path': request.path,
                'request_id': getattr(g, 'request_id', None),
            },
        )
        return jsonify(success=False, message="Session expired, please log in again"), 401

    return app
