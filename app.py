# app.py
import io
import logging
import os
from pathlib import Path

from flask import (
    Flask, request, redirect, url_for, send_file, abort, jsonify
)
from flask_login import (
    LoginManager, UserMixin, login_user, logout_user,
    login_required, current_user
)
from werkzeug.security import generate_password_hash, check_password_hash

from branding import branding_from_profile
from config import Config
from invoice_document import FormSnapshot, document_from_form
from invoice_templates import TEMPLATE_CATEGORIES, build_default_registry
from log_config import configure_logging
from models import Base, make_engine, make_session_factory, User
from pdf_service import InvoicePdfRenderer, load_invoice_document, logo_loader_for
from preview import InvoicePreviewRenderer
from rendering import RenderOptions, RenderSuccess, TemplateNotFound, ValidationFailure

_LOGGER = logging.getLogger(__name__)

login_manager = LoginManager()


# -----------------------------
# Flask-Login user wrapper
# -----------------------------
class AppUser(UserMixin):
    def __init__(self, user_id: int, username: str):
        self.id = str(user_id)
        self.username = username


# -----------------------------
# Helpers
# -----------------------------
def _ensure_dirs(cfg: dict):
    for key in ("EXPORTS_DIR", "UPLOADS_DIR"):
        Path(cfg[key]).mkdir(parents=True, exist_ok=True)
    db_uri = cfg["SQLALCHEMY_DATABASE_URI"]
    if db_uri.startswith("sqlite:///") and ":memory:" not in db_uri:
        Path(db_uri.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)


def _current_user_id_int() -> int:
    try:
        return int(current_user.get_id())
    except Exception:
        abort(401)


def _result_error(result):
    """HTTP response for a render that did not produce output."""
    if isinstance(result, ValidationFailure):
        return jsonify({"error": "validation", "errors": list(result.errors)}), 422
    if isinstance(result, TemplateNotFound):
        return jsonify({"error": "template_not_found", "template_id": result.template_id}), 404
    return jsonify({"error": "render_failure", "message": result.message, "retryable": result.retryable}), 500


def _render_options() -> RenderOptions:
    watermark = (request.args.get("watermark") or "").strip() or None
    quality = (request.args.get("quality") or "standard").strip().lower()
    if quality not in ("draft", "standard", "high"):
        quality = "standard"
    return RenderOptions(watermark=watermark, quality=quality)


def create_app(test_config: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    _ensure_dirs(app.config)

    login_manager.init_app(app)

    engine = make_engine(app.config["SQLALCHEMY_DATABASE_URI"], echo=app.config["SQLALCHEMY_ECHO"])
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)

    def db_session():
        return SessionLocal()

    registry = build_default_registry()
    pdf_renderer = InvoicePdfRenderer(
        registry,
        logo_loader=logo_loader_for(app.config["UPLOADS_DIR"], app.config["APP_BASE_URL"]),
        locale=app.config["DEFAULT_LOCALE"],
    )
    preview_renderer = InvoicePreviewRenderer(
        registry,
        scale=app.config["PREVIEW_SCALE"],
        locale=app.config["DEFAULT_LOCALE"],
    )
    app.extensions["template_registry"] = registry
    app.extensions["pdf_renderer"] = pdf_renderer
    app.extensions["preview_renderer"] = preview_renderer
    app.extensions["db_session"] = SessionLocal

    strict_templates = bool(app.config.get("STRICT_TEMPLATES"))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "login_required"}), 401

    @login_manager.user_loader
    def load_user(user_id: str):
        try:
            uid = int(user_id)
        except Exception:
            return None
        with db_session() as s:
            u = s.get(User, uid)
            if not u:
                return None
            return AppUser(u.id, u.username)

    # Ensure at least one user exists so a fresh install can log in immediately
    def _bootstrap_first_user():
        username = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
        password = os.getenv("INITIAL_ADMIN_PASSWORD", "changeme")
        with db_session() as s:
            if s.query(User).first():
                return
            s.add(User(username=username, password_hash=generate_password_hash(password)))
            s.commit()
            _LOGGER.info("Created initial user %r", username)

    _bootstrap_first_user()

    # -----------------------------
    # Auth routes
    # -----------------------------
    @app.route("/login", methods=["POST"])
    def login():
        payload = request.get_json(silent=True) or request.form
        username = (payload.get("username") or "").strip()
        password = payload.get("password") or ""
        with db_session() as s:
            u = s.query(User).filter(User.username == username).first()
            if u and check_password_hash(u.password_hash, password):
                login_user(AppUser(u.id, u.username))
                return jsonify({"ok": True, "username": u.username})
        _LOGGER.info("Failed login for %r", username)
        return jsonify({"ok": False, "error": "Invalid username or password."}), 401

    @app.route("/logout")
    @login_required
    def logout():
        logout_user()
        return redirect(url_for("templates_index"))

    # -----------------------------
    # Templates
    # -----------------------------
    @app.route("/templates")
    def templates_index():
        out = []
        for cat in registry.categories():
            out.append({
                **cat,
                "templates": [
                    {
                        "id": cfg.id,
                        "name": cfg.name,
                        "description": cfg.description,
                        "preview_image": cfg.preview_image,
                        "is_default": cfg.id == registry.get_default().id,
                    }
                    for cfg in registry.list_by_category(cat["category"])
                ],
            })
        return jsonify({"default": registry.get_default().id, "categories": out})

    @app.route("/templates/<template_id>")
    def template_detail(template_id):
        entry = registry.get_entry(template_id)
        if entry is None:
            abort(404)
        return jsonify({
            "category": entry.category,
            "category_name": TEMPLATE_CATEGORIES[entry.category]["name"],
            "is_default": entry.is_default,
            "is_premium": entry.is_premium,
            "config": entry.config.to_dict(),
        })

    # -----------------------------
    # Invoice output
    # -----------------------------
    def _load_owned(invoice_id: int):
        uid = _current_user_id_int()
        with db_session() as s:
            try:
                return load_invoice_document(s, invoice_id, user_id=uid)
            except LookupError:
                abort(404)

    @app.route("/invoices/<int:invoice_id>/pdf")
    @login_required
    def invoice_pdf(invoice_id):
        document, branding = _load_owned(invoice_id)
        strict = strict_templates or request.args.get("strict") == "1"
        result = pdf_renderer.render(
            document,
            request.args.get("template_id") or None,
            branding,
            fallback_to_default=not strict,
            options=_render_options(),
        )
        if not isinstance(result, RenderSuccess):
            return _result_error(result)
        if result.is_degraded:
            _LOGGER.warning("Invoice %s rendered without: %s", invoice_id, ", ".join(result.degraded))
        return send_file(
            io.BytesIO(result.content),
            as_attachment=True,
            download_name=result.filename,
            mimetype=result.mime_type,
        )

    @app.route("/invoices/<int:invoice_id>/preview")
    @login_required
    def invoice_preview(invoice_id):
        document, branding = _load_owned(invoice_id)
        result = preview_renderer.render(
            document,
            request.args.get("template_id") or None,
            branding,
            scale=request.args.get("scale"),
            fallback_to_default=not strict_templates,
            options=_render_options(),
        )
        if not isinstance(result, RenderSuccess):
            return _result_error(result)
        return result.content.to_html()

    @app.route("/preview", methods=["POST"])
    @login_required
    def form_preview():
        """Live preview of an unsaved invoice form (JSON body = form fields)."""
        payload = request.get_json(silent=True) or {}
        snapshot = FormSnapshot.from_dict(payload.get("invoice") or payload)
        with db_session() as s:
            owner = s.get(User, _current_user_id_int())
            profile = owner if owner and owner.business_name else None
            branding = branding_from_profile(owner) if owner and owner.brand_primary_color else None
            document = document_from_form(snapshot, profile)
        result = preview_renderer.render(
            document,
            payload.get("template_id") or None,
            branding,
            scale=payload.get("scale"),
            fallback_to_default=not strict_templates,
        )
        if not isinstance(result, RenderSuccess):
            return _result_error(result)
        return result.content.to_html()

    return app


if __name__ == "__main__":
    configure_logging()
    app = create_app()
    app.run(debug=True)
