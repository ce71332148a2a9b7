# ABOUTME: Book routes for the web UI: list, create, detail, edit, notes, delete, download.
# ABOUTME: Also hosts quick add and instruction edits, both backed by the completion API.

import logging
import sqlite3
from pathlib import Path, PurePosixPath
from typing import Any

from flask import (
    Blueprint,
    current_app,
    redirect,
    render_template,
    request,
    send_from_directory,
    url_for,
)
from werkzeug.exceptions import NotFound

from alaya.db.catalog import BookNotFoundError, ConstraintViolationError
from alaya.gpt import DEFAULT_MODEL, GptClient, SummaryError
from alaya.web.auth import login_required
from alaya.web.db import get_catalog

logger = logging.getLogger(__name__)

bp = Blueprint("books", __name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".epub": "application/epub+zip",
    ".mobi": "application/x-mobipocket-ebook",
    ".txt": "text/plain",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def _optional(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def _parse_year(value: str | None) -> int | None:
    try:
        return int((value or "").strip())
    except ValueError:
        return None


def _gpt() -> GptClient:
    return current_app.extensions["alaya_gpt"]


def _load_book_or_home(book_id: str) -> Any:
    book = get_catalog().get_by_id(book_id)
    if book is None:
        return None, redirect(url_for("books.index"))
    return book, None


@bp.route("/")
def index() -> str:
    notes_only = request.args.get("notes") == "true"
    books = get_catalog().list_books(with_notes=notes_only)
    return render_template("book_list.html", books=books, notes=notes_only)


@bp.route("/books/new")
@login_required
def new() -> str:
    return render_template("book_form.html", error_message=None, form={})


@bp.route("/books", methods=("POST",))
@login_required
def create() -> Any:
    form = request.form
    title = form.get("title", "").strip()
    if not title:
        return render_template("book_form.html", error_message="Title is required", form=form)

    try:
        get_catalog().add_book(
            title,
            author=_optional(form.get("author")),
            publication_year=_parse_year(form.get("publication_year")),
            notes=_optional(form.get("notes")),
        )
    except (ConstraintViolationError, sqlite3.Error) as exc:
        logger.error("Book creation error: %s", exc)
        return render_template(
            "book_form.html",
            error_message="Could not create book. Please try again.",
            form=form,
        )
    return redirect(url_for("books.index"))


@bp.route("/books/<book_id>")
def detail(book_id: str) -> Any:
    book, fallback = _load_book_or_home(book_id)
    if book is None:
        return fallback
    return render_template("book_detail.html", book=book)


@bp.route("/books/<book_id>/delete", methods=("POST",))
@login_required
def delete(book_id: str) -> Any:
    try:
        get_catalog().delete_book(book_id)
    except BookNotFoundError:
        return "Book not found", 404
    except sqlite3.Error as exc:
        logger.error("Error deleting book: %s", exc)
        return "Could not delete book", 500
    return redirect(url_for("books.index"))


@bp.route("/books/<book_id>/edit", methods=("GET", "POST"))
@login_required
def edit(book_id: str) -> Any:
    book, fallback = _load_book_or_home(book_id)
    if book is None:
        return fallback
    if request.method == "GET":
        return render_template("book_edit.html", book=book, error_message=None)

    title = request.form.get("title", "").strip()
    if not title:
        return render_template("book_edit.html", book=book, error_message="Title is required")

    try:
        get_catalog().update_book(
            book_id,
            title=title,
            author=_optional(request.form.get("author")),
            publication_year=_parse_year(request.form.get("publication_year")),
        )
    except BookNotFoundError:
        return redirect(url_for("books.index"))
    except (ConstraintViolationError, sqlite3.Error) as exc:
        logger.error("Book update error: %s", exc)
        return render_template(
            "book_edit.html",
            book=book,
            error_message="Could not update book. Please try again.",
        )
    return redirect(url_for("books.detail", book_id=book_id))


@bp.route("/books/<book_id>/edit-chat", methods=("GET", "POST"))
@login_required
def edit_chat(book_id: str) -> Any:
    book, fallback = _load_book_or_home(book_id)
    if book is None:
        return fallback

    def page(
        error_message: str | None = None, proposal: Any = None, model: str = DEFAULT_MODEL
    ) -> str:
        return render_template(
            "book_edit_chat.html",
            book=book,
            error_message=error_message,
            proposal=proposal,
            model=model,
        )

    if request.method == "GET":
        return page()

    instruction = request.form.get("instruction", "").strip()
    model = request.form.get("model", "").strip() or DEFAULT_MODEL
    if not instruction:
        return page("Please enter an instruction", model=model)

    gpt = _gpt()
    if not gpt.has_api_key:
        return page("AI features not available (API key not configured)", model=model)

    try:
        proposal = gpt.edit_book_with_instruction(
            book.title, book.author, book.publication_year, instruction, model=model
        )
    except SummaryError as exc:
        logger.warning("Edit instruction failed for %s: %s", book_id, exc)
        return page(f"AI error: {exc}", model=model)
    return page(proposal=proposal, model=model)


@bp.route("/books/<book_id>/edit-chat/apply", methods=("POST",))
@login_required
def edit_chat_apply(book_id: str) -> Any:
    title = request.form.get("title", "").strip()
    if not title:
        return redirect(url_for("books.edit_chat", book_id=book_id))

    try:
        get_catalog().update_book(
            book_id,
            title=title,
            author=_optional(request.form.get("author")),
            publication_year=_parse_year(request.form.get("publication_year")),
        )
    except BookNotFoundError:
        return redirect(url_for("books.index"))
    except (ConstraintViolationError, sqlite3.Error) as exc:
        logger.error("Book update error: %s", exc)
        return redirect(url_for("books.edit_chat", book_id=book_id))
    return redirect(url_for("books.detail", book_id=book_id))


@bp.route("/books/<book_id>/notes", methods=("GET", "POST"))
@login_required
def notes(book_id: str) -> Any:
    book, fallback = _load_book_or_home(book_id)
    if book is None:
        return fallback
    if request.method == "GET":
        return render_template("book_notes.html", book=book, error_message=None)

    try:
        get_catalog().update_notes(book_id, request.form.get("notes"))
    except BookNotFoundError:
        return redirect(url_for("books.index"))
    except sqlite3.Error as exc:
        logger.error("Notes update error: %s", exc)
        return render_template(
            "book_notes.html",
            book=book,
            error_message="Could not save notes. Please try again.",
        )
    return redirect(url_for("books.detail", book_id=book_id))


@bp.route("/books/<book_id>/download")
def download(book_id: str) -> Any:
    book = get_catalog().get_by_id(book_id)
    if book is None:
        return "Book not found", 404
    if not book.filepath:
        return "No file associated with this book", 404

    library: Path = current_app.config["ALAYA_SETTINGS"].library_path
    relative = PurePosixPath(book.filepath)
    mimetype = CONTENT_TYPES.get(relative.suffix.lower(), "application/octet-stream")
    try:
        # Rejects paths that escape the library root as well as missing files.
        return send_from_directory(
            library.resolve(),
            relative.as_posix(),
            mimetype=mimetype,
            as_attachment=True,
            download_name=relative.name,
        )
    except NotFound:
        logger.warning("File not found: %s under %s", book.filepath, library)
        return "File not found on disk", 404


@bp.route("/books/quick-add", methods=("GET", "POST"))
@login_required
def quick_add() -> Any:
    if request.method == "GET":
        return render_template("book_quick_add.html", error_message=None, model=DEFAULT_MODEL)

    query = request.form.get("query", "").strip()
    model = request.form.get("model", "").strip() or DEFAULT_MODEL

    def fail(message: str) -> str:
        return render_template("book_quick_add.html", error_message=message, model=model)

    if not query:
        return fail("Please enter a book")

    gpt = _gpt()
    if not gpt.has_api_key:
        return fail("AI features not available (API key not configured)")

    try:
        extracted = gpt.extract_book_metadata(query, model=model)
    except SummaryError as exc:
        logger.warning("Quick add lookup failed for %r: %s", query, exc)
        return fail(f"Could not identify book: {exc}")

    try:
        book = get_catalog().add_book(
            extracted.title,
            author=extracted.author,
            publication_year=extracted.publication_year,
        )
    except (ConstraintViolationError, sqlite3.Error) as exc:
        logger.error("Book creation error: %s", exc)
        return fail("Could not save book. Please try again.")
    return redirect(url_for("books.detail", book_id=book.id))

