from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw not in (None, '') else default
    except ValueError:
        return default


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['DP_MIN_AMOUNT'] = _env_int('DP_MIN_AMOUNT', 100000)
    app.config['PUBLIC_VIEW_TTL_DAYS'] = _env_int('PUBLIC_VIEW_TTL_DAYS', 0)
    app.config['TRACK_NUMBER_PREFIX'] = os.getenv('TRACK_NUMBER_PREFIX', 'WO')
    app.config['MEDIA_CLOUD_NAME'] = os.getenv('MEDIA_CLOUD_NAME', '')
    app.config['MEDIA_API_KEY'] = os.getenv('MEDIA_API_KEY', '')
    app.config['MEDIA_API_SECRET'] = os.getenv('MEDIA_API_SECRET', '')
    app.config['MEDIA_ROOT_FOLDER'] = os.getenv('MEDIA_ROOT_FOLDER', 'service_form')
    app.config['MEDIA_TIMEOUT'] = _env_int('MEDIA_TIMEOUT', 30)
    app.config['PAGE_DEFAULT_LIMIT'] = _env_int('PAGE_DEFAULT_LIMIT', 50)
    app.config['PAGE_MAX_LIMIT'] = _env_int('PAGE_MAX_LIMIT', 200)

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('service_center').setLevel(app.config['LOG_LEVEL'])

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .services.media_host import MediaHost, MediaHostError
    media_host = MediaHost.from_config(app.config)
    if media_host.configured:
        media_host.configure()
    app.extensions['media_host'] = media_host

    from .routes.iam import iam_bp
    from .routes.service_requests import sr_bp
    from .routes.dp_payments import dp_bp
    from .routes.public import public_bp
    from .routes.media import media_bp
    from .routes.receipts import receipts_bp
    from .routes.branches import branches_bp
    from .routes.settings import settings_bp
    from .routes.admin_logs import admin_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(sr_bp, url_prefix='/service-requests')
    app.register_blueprint(dp_bp, url_prefix='/service-requests')
    app.register_blueprint(public_bp, url_prefix='/public')
    app.register_blueprint(media_bp, url_prefix='/media')
    app.register_blueprint(receipts_bp, url_prefix='/receipts')
    app.register_blueprint(branches_bp, url_prefix='/branches')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    def _error(status: int, title: str, detail: str, **extra):
        payload = {'error': {'status': status, 'title': title, 'detail': detail}}
        payload['error'].update(extra)
        return payload, status

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # discard half-applied writes so the shared session stays usable
        get_db().rollback()
        if isinstance(e, HTTPException):
            extra = {}
            errors = getattr(e, 'errors', None)
            if errors:
                extra['errors'] = errors
            if e.code and e.code >= 500:
                app.logger.error('%s: %s', e.name, e.description)
            return _error(e.code, e.name, e.description, **extra)
        if isinstance(e, StaleDataError):
            app.logger.warning('Concurrent update rejected: %s', e)
            return _error(409, 'Conflict', 'Record was modified by another request; reload and retry')
        if isinstance(e, IntegrityError):
            app.logger.warning('Integrity error: %s', e.orig)
            return _error(409, 'Conflict', 'Duplicate or conflicting data')
        if isinstance(e, MediaHostError):
            app.logger.error('Media host failure: %s', e)
            return _error(502, 'Bad Gateway', str(e))
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error(500, 'Internal Server Error', 'Unexpected error')

    # OpenAPI spec route (minimal)
    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>Service Center API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
