import logging
import time
from datetime import timedelta

from flask import Flask, g, request, session
from dotenv import load_dotenv

from app.cwms.config import load_config
from app.cwms.db import init_db, teardown_db_session
from app.cwms.errors import AppError, register_error_handlers
from app.cwms.routes import bp as routes_bp
from app.cwms.auth import bp as auth_bp, load_current_user
from app.cwms.modules.admin.api import bp as admin_bp
from app.cwms.modules.companies.api import bp as companies_bp
from app.cwms.modules.transporters.api import bp as transporters_bp
from app.cwms.modules.inward.api import bp as inward_bp, materials_bp as inward_materials_bp
from app.cwms.modules.outward.api import bp as outward_bp
from app.cwms.modules.invoices.api import bp as invoices_bp
from app.cwms.modules.dashboard.api import bp as dashboard_bp
from app.cwms.modules.settings.api import bp as settings_bp


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)
    app.logger.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False
    _configure_logging(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    # CSRF protection (minimal)
    from app.cwms.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                raise AppError("CSRF token missing or invalid", status_code=403)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    @app.after_request
    def _access_log(response):
        if request.path.startswith("/api"):
            started = getattr(g, "request_started", None)
            duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
            app.logger.info(
                "%s %s %s %.1fms request_id=%s",
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                getattr(g, "request_id", None),
            )
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(companies_bp, url_prefix="/api/companies")
    app.register_blueprint(transporters_bp, url_prefix="/api/transporters")
    app.register_blueprint(inward_bp, url_prefix="/api/inward")
    app.register_blueprint(inward_materials_bp, url_prefix="/api/inward-materials")
    app.register_blueprint(outward_bp, url_prefix="/api/outward")
    app.register_blueprint(invoices_bp, url_prefix="/api/invoices")
    app.register_blueprint(dashboard_bp, url_prefix="/api/dashboard")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
