# ABOUTME: Account routes for the web UI: login, signup, logout, and profile.
# ABOUTME: Sessions ride in an HttpOnly cookie; signups can be switched off by environment.

import functools
import logging
import sqlite3
from collections.abc import Callable
from typing import Any

from flask import Blueprint, Response, current_app, g, redirect, render_template, request, url_for

from alaya.db.accounts import DuplicateUsernameError
from alaya.web.db import get_accounts, get_catalog

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

SESSION_COOKIE = "session_token"
SESSION_MAX_AGE = 7 * 24 * 60 * 60
MIN_PASSWORD_LENGTH = 8


def signups_disabled() -> bool:
    return current_app.config["ALAYA_SETTINGS"].signups_disabled


@bp.before_app_request
def load_current_user() -> None:
    token = request.cookies.get(SESSION_COOKIE)
    g.user = get_accounts().validate_session(token) if token else None


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """Redirect anonymous visitors to the login page."""

    @functools.wraps(view)
    def wrapped_view(**kwargs: Any) -> Any:
        if g.user is None:
            return redirect(url_for("auth.login"))
        return view(**kwargs)

    return wrapped_view


def _start_session(user_id: str) -> Response:
    token = get_accounts().create_session(user_id)
    response = redirect(url_for("books.index"))
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=SESSION_MAX_AGE,
        path="/",
        httponly=True,
        samesite="Lax",
    )
    return response


def _signups_closed() -> tuple[str, int]:
    return "signups are disabled.", 403


@bp.route("/login", methods=("GET", "POST"))
def login() -> Any:
    if g.user is not None:
        return redirect(url_for("books.index"))
    if request.method == "GET":
        return render_template("login.html", form_username="", error_message=None)

    username = request.form.get("username", "").strip()
    password = request.form.get("password", "")

    error = None
    if not username:
        error = "Username cannot be empty"
    elif not password:
        error = "Password cannot be empty"
    if error:
        return render_template("login.html", form_username=username, error_message=error)

    try:
        user = get_accounts().verify_user(username, password)
        if user is None:
            return render_template(
                "login.html",
                form_username=username,
                error_message="Invalid username or password",
            )
        return _start_session(user.id)
    except sqlite3.Error as exc:
        logger.error("Authentication error: %s", exc)
        return render_template(
            "login.html", form_username=username, error_message="Authentication failed"
        )


@bp.route("/signup", methods=("GET", "POST"))
def signup() -> Any:
    if g.user is not None:
        return redirect(url_for("books.index"))
    if signups_disabled():
        return _signups_closed()
    if request.method == "GET":
        return render_template("signup.html", form_username="", error_message=None)

    username = request.form.get("username", "").strip()
    password = request.form.get("password", "")
    confirm_password = request.form.get("confirm_password", "")

    error = None
    if not username:
        error = "Username cannot be empty"
    elif len(password) < MIN_PASSWORD_LENGTH:
        error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    elif password != confirm_password:
        error = "Passwords do not match"
    if error:
        return render_template("signup.html", form_username=username, error_message=error)

    try:
        user = get_accounts().create_user(username, password)
        return _start_session(user.id)
    except DuplicateUsernameError:
        error = "Username already exists"
    except sqlite3.Error as exc:
        logger.error("User registration error: %s", exc)
        error = "Could not create account. Please try again."
    return render_template("signup.html", form_username=username, error_message=error)


@bp.route("/logout", methods=("POST",))
def logout() -> Response:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            get_accounts().delete_session(token)
        except sqlite3.Error as exc:
            logger.error("Failed to delete session: %s", exc)

    response = redirect(url_for("auth.login"))
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="Lax")
    return response


@bp.route("/profile")
@login_required
def profile() -> str:
    return render_template("profile.html", book_count=get_catalog().count_books())
