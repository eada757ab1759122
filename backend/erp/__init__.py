from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(seconds=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', '43200')))
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    # No default: create-initial-admin stays closed until a key is configured
    app.config['INITIAL_ADMIN_SETUP_KEY'] = os.getenv('INITIAL_ADMIN_SETUP_KEY')
    app.config['PUBLIC_APP_URL'] = os.getenv('PUBLIC_APP_URL', 'http://localhost:3000')
    app.config['REPORT_TIMEZONE'] = os.getenv('REPORT_TIMEZONE', 'America/Asuncion')
    app.config['REPORT_BATCH_SIZE'] = int(os.getenv('REPORT_BATCH_SIZE', '10'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['APP_ENV'] = os.getenv('APP_ENV', 'development')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))

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

    from .routes.health import health_bp
    from .routes.admin import admin_bp
    from .routes.iam import iam_bp
    from .routes.menu import menu_bp
    from .routes.materials import mat_bp  # CMAT01
    from .routes.inventory import inv_bp  # INV01 + EMAT01 / SMAT01
    from .routes.work_orders import cord_bp  # CORD01
    from .routes.fuel_entries import ecom_bp  # ECOM01
    from .routes.fuel_loads import scom_bp  # SCOM01
    from .routes.reports import rpt_bp
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(menu_bp, url_prefix='/menu')
    app.register_blueprint(mat_bp, url_prefix='/CMAT01')
    app.register_blueprint(inv_bp, url_prefix='/INV01')
    app.register_blueprint(cord_bp, url_prefix='/CORD01')
    app.register_blueprint(ecom_bp, url_prefix='/ECOM01')
    app.register_blueprint(scom_bp, url_prefix='/SCOM01')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        # Discard whatever a rejected request left pending
        if SessionLocal is not None:
            SessionLocal.rollback()
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                }
            }
            # Form validators attach per-field messages
            errors = getattr(e, 'errors', None)
            if errors:
                payload['error']['errors'] = errors
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error'
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
