# FILE: portal/__init__.py
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask
from config import Config
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# 1. Extensions are declared here and bound to the app inside create_app
db = SQLAlchemy()
migrate = Migrate()
login = LoginManager()
# No login_view: unauthenticated API calls get a plain 401


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    if not app.config.get('SECRET_KEY'):
        # Tokens are signed with it, so there is no usable default
        raise RuntimeError('SECRET_KEY is not set. Add it to .env or the environment.')
    app.json.sort_keys = False

    # 2. Bind extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login.init_app(app)

    from portal.errors import bp as errors_bp
    app.register_blueprint(errors_bp)

    from portal.main import bp as main_bp
    app.register_blueprint(main_bp)

    from portal.auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/account')

    from portal.admin import bp as admin_bp
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    from portal.modules import bp as modules_bp
    app.register_blueprint(modules_bp, url_prefix='/api/modules')

    from portal.documents import bp as documents_bp
    app.register_blueprint(documents_bp, url_prefix='/api/documents')

    from portal.repository import bp as repository_bp
    app.register_blueprint(repository_bp, url_prefix='/api/repository')

    from portal.faq import bp as faq_bp
    app.register_blueprint(faq_bp, url_prefix='/api/faq')

    from portal.notifications import bp as notifications_bp
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    from portal.scheduler import bp as scheduler_bp
    app.register_blueprint(scheduler_bp, url_prefix='/api/scheduler')

    configure_logging(app)

    # Create any missing tables and make sure the four portal roles exist.
    # Schema changes after the first deploy go through `flask db migrate`.
    with app.app_context():
        from portal import models
        db.create_all()
        models.ensure_roles()

    return app


def configure_logging(app):
    if app.debug or app.testing:
        return

    if app.config.get('LOG_TO_STDOUT'):
        handler = logging.StreamHandler()
    else:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        handler = RotatingFileHandler('logs/portal.log', maxBytes=1024 * 1024, backupCount=10)

    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'))
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    handler.setLevel(level)
    app.logger.addHandler(handler)
    app.logger.setLevel(level)
    app.logger.info('Academic portal startup')
