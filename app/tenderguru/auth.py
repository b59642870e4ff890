from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, url_for

from app.tenderguru.constants import JWT_COOKIE_NAME, ROLE_ADMIN, ROLE_STAFF
from app.tenderguru.db import db_session
from app.tenderguru.errors import AuthError, ServerError, ValidationError
from app.tenderguru.mailer import MailError, mail_configured, send_email
from app.tenderguru.models import User
from app.tenderguru.modules.accounts import service
from app.tenderguru.modules.accounts.schemas import Registration, UserAdminUpdate, UserSelfUpdate
from app.tenderguru.rbac import authenticate_request, require_auth, restrict_to
from app.tenderguru.security import sign_token
from app.tenderguru.utils import clean_str, request_payload, success

bp = Blueprint("auth", __name__)


def load_request_context() -> None:
    """
    Assigns a per-request request_id (for audit/log correlation).
    g.current_user is filled in by the route guards, not here.
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.current_user = None


def _token_response(user: User, status_code: int):
    cfg = current_app.config
    token = sign_token(user.id, cfg["JWT_SECRET"], int(cfg["JWT_EXPIRES_IN"]))
    resp = jsonify({"status": "success", "token": token, "data": {"user": user.to_public_dict()}})
    resp.set_cookie(
        JWT_COOKIE_NAME,
        token,
        expires=datetime.utcnow() + timedelta(days=int(cfg["JWT_COOKIE_EXPIRES_DAYS"])),
        httponly=True,
        secure=bool(cfg.get("JWT_COOKIE_SECURE")),
        samesite=cfg.get("JWT_COOKIE_SAMESITE") or "Lax",
    )
    return resp, status_code


def _registration_actor(bootstrap: bool) -> User | None:
    """
    Open registration lets anyone sign up (a signed-in caller is still picked up).
    Otherwise only the very first account (bootstrap) or an admin caller may register users.
    """
    if current_app.config.get("ALLOW_OPEN_REGISTRATION"):
        try:
            return authenticate_request()
        except AuthError:
            return None
    if bootstrap:
        return None
    actor = authenticate_request()
    if actor.role != ROLE_ADMIN:
        raise AuthError("Only administrators can register new users", 403)
    return actor


@bp.post("/register")
def register():
    s = db_session()
    bootstrap = service.count_users(s) == 0
    actor = _registration_actor(bootstrap)
    reg = Registration.from_payload(request_payload(request))
    # Self sign-ups get the default role; only admins (or the first account) pick another.
    if reg.role != ROLE_STAFF and not bootstrap and not (actor and actor.role == ROLE_ADMIN):
        raise AuthError("Only administrators can assign roles", 403)
    user = service.register_user(s, reg, actor=actor)
    s.commit()
    current_app.logger.info("New user registered: id=%s role=%s employee_id=%s", user.id, user.role, user.employee_id)
    return _token_response(user, 201)


@bp.post("/login")
def login():
    payload = request_payload(request)
    s = db_session()
    user = service.authenticate(s, clean_str(payload.get("email")) or "", payload.get("password"))
    s.commit()
    current_app.logger.info("User logged in: id=%s role=%s request_id=%s", user.id, user.role, g.request_id)
    return _token_response(user, 200)


@bp.get("/logout")
def logout():
    resp = jsonify({"status": "success"})
    resp.delete_cookie(JWT_COOKIE_NAME)
    return resp, 200


@bp.post("/forgot-password")
def forgot_password():
    cfg = current_app.config
    payload = request_payload(request)
    s = db_session()
    user, raw_token = service.issue_password_reset(s, payload.get("email") or "")
    s.commit()

    reset_url = url_for("auth.reset_password", token=raw_token, _external=True)
    if mail_configured(cfg):
        try:
            send_email(
                cfg,
                user.email,
                "Your password reset token (valid for 10 minutes)",
                f"Forgot your password? Submit a POST or PATCH request with your new password to: {reset_url}\n"
                "If you didn't request this, please ignore this email.",
            )
        except MailError:
            current_app.logger.exception("Password reset email failed (user=%s)", user.id)
            service.clear_password_reset(user)
            s.commit()
            raise ServerError("There was an error sending the email. Try again later!") from None
    else:
        current_app.logger.warning("SMTP not configured; reset token for user=%s was not mailed", user.id)

    body: dict = {"status": "success", "message": "Token sent to email!"}
    if cfg.get("EXPOSE_RESET_TOKEN"):
        # Test-only shortcut; disabled in production by config.
        body["token"] = raw_token
    return jsonify(body), 200


@bp.route("/reset-password/<token>", methods=["POST", "PATCH"])
def reset_password(token: str):
    payload = request_payload(request)
    s = db_session()
    user = service.reset_password(s, token, payload.get("password") or "")
    s.commit()
    return _token_response(user, 200)


@bp.patch("/update-password")
@require_auth
def update_password():
    payload = request_payload(request)
    s = db_session()
    user = service.change_password(s, g.current_user, payload.get("passwordCurrent"), payload.get("password"))
    s.commit()
    return _token_response(user, 200)


@bp.get("/me")
@require_auth
def me():
    return jsonify(success({"user": g.current_user.to_public_dict()})), 200


@bp.patch("/update-me")
@require_auth
def update_me():
    update = UserSelfUpdate.from_payload(request_payload(request))
    if not update.changes:
        raise ValidationError("No updatable fields provided.")
    s = db_session()
    user = service.update_profile(s, g.current_user, update)
    s.commit()
    return jsonify(success({"user": user.to_public_dict()})), 200


@bp.get("/users")
@require_auth
@restrict_to(ROLE_ADMIN)
def get_all_users():
    users = service.list_users(db_session())
    return jsonify(success({"users": [u.to_public_dict() for u in users]}, results=len(users))), 200


@bp.get("/users/<employee_id>")
@require_auth
def get_user_by_employee_id(employee_id: str):
    user = service.get_user_by_employee_id(db_session(), employee_id)
    return jsonify(success({"user": user.to_public_dict()})), 200


@bp.patch("/users/<int:user_id>")
@require_auth
@restrict_to(ROLE_ADMIN)
def update_user(user_id: int):
    update = UserAdminUpdate.from_payload(request_payload(request))
    s = db_session()
    user = service.admin_update_user(s, user_id, update, g.current_user)
    s.commit()
    current_app.logger.info("User updated: id=%s by=%s", user.id, g.current_user.id)
    return jsonify(success({"user": user.to_public_dict()})), 200


@bp.delete("/users/<int:user_id>")
@require_auth
@restrict_to(ROLE_ADMIN)
def delete_user(user_id: int):
    s = db_session()
    service.delete_user(s, user_id, g.current_user)
    s.commit()
    current_app.logger.info("User deleted: id=%s by=%s", user_id, g.current_user.id)
    return "", 204
