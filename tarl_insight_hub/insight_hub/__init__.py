# -*- coding: utf-8 -*-
"""
TaRL Insight Hub: Flask application factory
Role based page and action permissions with personal menu ordering.
"""

import os
import logging
from flask import Flask, request, session, g
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_babel import Babel
from logging.handlers import RotatingFileHandler
from config import Config

# ───────── Extensions ───────── #
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
babel = Babel()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.setdefault("SECRET_KEY", os.urandom(24))
    app.config.setdefault("LANGUAGES", ["en", "km"])
    app.config.setdefault("BABEL_DEFAULT_LOCALE", "en")

    # ───────── Init extensions ───────── #
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    # ───────── Flask-Login ───────── #
    from insight_hub.models.user import User
    from insight_hub.errors import Unauthorized

    @login_manager.user_loader
    def load_user(uid):
        user = db.session.get(User, int(uid))
        if user is None or not user.active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        raise Unauthorized()

    # ───────── Babel (URL/session/header locale) ───────── #
    def get_locale():
        lang = request.args.get("lang")
        if lang in app.config["LANGUAGES"]:
            session["lang"] = lang
            g.locale = lang
            return lang
        stored = session.get("lang")
        if stored in app.config["LANGUAGES"]:
            g.locale = stored
            return stored
        best = request.accept_languages.best_match(app.config["LANGUAGES"])
        g.locale = best or app.config["BABEL_DEFAULT_LOCALE"]
        return g.locale

    babel.init_app(app, locale_selector=get_locale)

    # ───────── Blueprints ───────── #
    from insight_hub.auth.routes import auth_bp
    from insight_hub.api.routes import api_bp
    from insight_hub.manage.routes import manage_bp
    from insight_hub.menu.routes import menu_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(manage_bp, url_prefix="/api")
    app.register_blueprint(menu_bp, url_prefix="/api/user")

    # ───────── Errors & CLI ───────── #
    from insight_hub.errors import register_error_handlers
    from insight_hub.seeds import register_commands

    register_error_handlers(app)
    register_commands(app)

    # ───────── Logging ───────── #
    _configure_logging(app)
    app.logger.info("TaRL Insight Hub started")

    return app


def _configure_logging(app):
    level = app.config.get("LOG_LEVEL", "INFO")
    log_dir = app.config.get("LOG_DIR") or "logs"
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.abspath(os.path.join(log_dir, "insight_hub.log"))

    # app.logger is shared by every app instance built in this process.
    if not any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == log_path
        for h in app.logger.handlers
    ):
        handler = RotatingFileHandler(log_path, maxBytes=10240, backupCount=10)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app.logger.addHandler(handler)

    if not any(type(h) is logging.StreamHandler for h in app.logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app.logger.addHandler(console_handler)

    app.logger.setLevel(level)
    app.logger.propagate = False

    if app.config.get("SQLALCHEMY_ECHO", False) or level == "DEBUG":
        sql_logger = logging.getLogger("sqlalchemy.engine")
        sql_logger.setLevel(logging.INFO)
        if not any(isinstance(h, logging.StreamHandler) for h in sql_logger.handlers):
            sql_console = logging.StreamHandler()
            sql_console.setFormatter(logging.Formatter("%(asctime)s [SQL] %(message)s"))
            sql_logger.addHandler(sql_console)
