from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_babel import Babel

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
babel = Babel()


def get_locale():
    # allow user override via session, else Accept-Language
    from flask import session, request
    if session.get("lang"):
        return session.get("lang")
    return request.accept_languages.best_match(["en", "ja"])


def create_app(config=None, services=None):
    """Application factory.

    ``services`` replaces the GitHub client, job queue, event sink and feature flags
    (see services.py); tests pass fakes here.
    """
    app = Flask(__name__, static_folder="static", template_folder="templates")
    if config is None:
        from .config import Config

        config = Config
    app.config.from_object(config)

    # Configure logging
    import logging
    app.logger.setLevel(logging.INFO)
    if not any(getattr(h, "_classroom", False) for h in app.logger.handlers):
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
        handler.setFormatter(formatter)
        handler._classroom = True  # type: ignore[attr-defined]
        app.logger.addHandler(handler)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    # unauthenticated requests are sent to GitHub sign-in
    login_manager.login_view = "auth.login"  # type: ignore
    login_manager.login_message_category = "warning"  # type: ignore
    from .models import User

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    csrf.init_app(app)
    babel.init_app(app, locale_selector=get_locale)

    from .services import init_services

    init_services(app, services)

    @app.after_request
    def set_security_headers(response):
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    # readiness/liveness check
    @app.route("/health", methods=["GET"])
    def health_check():
        return ("OK", 200)

    from .auth.routes import auth_bp
    from .invitations.routes import invitations_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(invitations_bp)

    from .cli import flags_cli, worker_cli

    app.cli.add_command(worker_cli)
    app.cli.add_command(flags_cli)

    return app
