# ABOUTME: Integration tests for the Flask web UI.
# ABOUTME: Drives accounts, book pages, downloads, quick add and AI edits through the test client.

from collections.abc import Iterator
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

from alaya.config import Settings
from alaya.db.catalog import BookCatalog
from alaya.db.connection import open_database
from alaya.db.migrations import MigrationError
from alaya.gpt import GptClient, GptConfig
from alaya.web import create_app
from tests.fixtures.chat_responses import (
    EDITED_BOOK_RESPONSE,
    METADATA_RESPONSE,
    FakePoster,
    chat_response,
)

PASSWORD = "correct horse"


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    (root / "calvino").mkdir(parents=True)
    (root / "calvino" / "cities.epub").write_bytes(b"PK fake epub")
    (tmp_path / "secret.txt").write_text("outside the library")
    return root


@pytest.fixture
def settings(db_path: Path, library: Path) -> Settings:
    return Settings(db_path=db_path, library_path=library)


@pytest.fixture
def poster() -> FakePoster:
    return FakePoster([METADATA_RESPONSE])


@pytest.fixture
def app(settings: Settings, poster: FakePoster) -> Flask:
    gpt = GptClient(GptConfig(api_key="sk-test"), http_client=poster)
    flask_app = create_app(settings, gpt_client=gpt)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def books(settings: Settings) -> Iterator[BookCatalog]:
    """A catalog on the same database file the app serves."""
    catalog = BookCatalog(open_database(settings.db_path))
    yield catalog
    catalog.close()


def _signup(client: FlaskClient, username: str = "reader") -> None:
    response = client.post(
        "/signup",
        data={"username": username, "password": PASSWORD, "confirm_password": PASSWORD},
    )
    assert response.status_code == 302


class TestCreateApp:
    def test_migrates_on_startup(self, app: Flask, settings: Settings) -> None:
        conn = open_database(settings.db_path, migrate=False)
        version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
        conn.close()
        assert version == 6

    def test_refuses_newer_database(self, settings: Settings) -> None:
        conn = open_database(settings.db_path)
        conn.execute("INSERT INTO schema_version (version, name) VALUES (42, 'future')")
        conn.commit()
        conn.close()
        with pytest.raises(MigrationError):
            create_app(settings)


class TestAccounts:
    """Signup, login, logout, and the session cookie."""

    def test_signup_sets_session_cookie(self, client: FlaskClient) -> None:
        response = client.post(
            "/signup",
            data={"username": "reader", "password": PASSWORD, "confirm_password": PASSWORD},
        )
        assert response.status_code == 302
        cookie = response.headers["Set-Cookie"]
        assert cookie.startswith("session_token=")
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie
        assert "Max-Age=604800" in cookie

    def test_signup_validation(self, client: FlaskClient) -> None:
        short = client.post(
            "/signup", data={"username": "reader", "password": "short", "confirm_password": "short"}
        )
        assert b"at least 8 characters" in short.data

        mismatch = client.post(
            "/signup",
            data={"username": "reader", "password": PASSWORD, "confirm_password": "different!"},
        )
        assert b"Passwords do not match" in mismatch.data

    def test_duplicate_username(self, app: Flask) -> None:
        _signup(app.test_client())
        response = app.test_client().post(
            "/signup",
            data={"username": "reader", "password": PASSWORD, "confirm_password": PASSWORD},
        )
        assert response.status_code == 200
        assert b"Username already exists" in response.data

    def test_signups_disabled(self, settings: Settings) -> None:
        settings.signups_disabled = True
        client = create_app(settings).test_client()
        assert client.get("/signup").status_code == 403
        response = client.post(
            "/signup",
            data={"username": "reader", "password": PASSWORD, "confirm_password": PASSWORD},
        )
        assert response.status_code == 403
        assert response.data == b"signups are disabled."
        assert b"Sign up" not in client.get("/").data

    def test_login_and_logout(self, app: Flask) -> None:
        _signup(app.test_client())

        client = app.test_client()
        bad = client.post("/login", data={"username": "reader", "password": "wrong pass"})
        assert b"Invalid username or password" in bad.data

        good = client.post("/login", data={"username": "reader", "password": PASSWORD})
        assert good.status_code == 302
        assert client.get("/profile").status_code == 200

        client.post("/logout")
        response = client.get("/profile")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/login")

    def test_profile_shows_book_count(self, client: FlaskClient, books: BookCatalog) -> None:
        books.add_book("Invisible Cities")
        _signup(client)
        response = client.get("/profile")
        assert b"reader" in response.data
        assert b"1 book(s)" in response.data


class TestBrowsing:
    """Anonymous visitors can read the catalog."""

    def test_index_lists_books(self, client: FlaskClient, books: BookCatalog) -> None:
        books.add_book("Invisible Cities", author="Italo Calvino", publication_year=1972)
        response = client.get("/")
        assert response.status_code == 200
        assert b"Invisible Cities" in response.data
        assert b"Italo Calvino" in response.data

    def test_notes_filter(self, client: FlaskClient, books: BookCatalog) -> None:
        books.add_book("Invisible Cities", notes="Cities of memory.")
        books.add_book("The Name of the Rose")
        response = client.get("/?notes=true")
        assert b"Invisible Cities" in response.data
        assert b"The Name of the Rose" not in response.data

    def test_detail(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities", notes="Cities of memory.")
        response = client.get(f"/books/{book.id}")
        assert b"Cities of memory." in response.data
        assert b"Edit notes" not in response.data

    def test_missing_detail_redirects_home(self, client: FlaskClient) -> None:
        response = client.get("/books/no-such-id")
        assert response.status_code == 302
        assert response.headers["Location"] == "/"

    def test_editing_requires_login(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities")
        for path in ("/books/new", f"/books/{book.id}/edit", f"/books/{book.id}/notes"):
            response = client.get(path)
            assert response.status_code == 302
            assert response.headers["Location"].endswith("/login")
        assert client.post(f"/books/{book.id}/delete").status_code == 302
        assert books.get_by_id(book.id) is not None


class TestEditing:
    """Logged-in users manage books."""

    @pytest.fixture(autouse=True)
    def _logged_in(self, client: FlaskClient) -> None:
        _signup(client)

    def test_create_book(self, client: FlaskClient, books: BookCatalog) -> None:
        response = client.post(
            "/books",
            data={"title": "Invisible Cities", "author": "Italo Calvino", "publication_year": "1972"},
        )
        assert response.status_code == 302
        [book] = books.find_by_title("Invisible Cities")
        assert book.author == "Italo Calvino"
        assert book.publication_year == 1972

    def test_create_requires_title(self, client: FlaskClient, books: BookCatalog) -> None:
        response = client.post("/books", data={"title": "  ", "author": "Nobody"})
        assert b"Title is required" in response.data
        assert books.count_books() == 0

    def test_bad_year_is_ignored(self, client: FlaskClient, books: BookCatalog) -> None:
        client.post("/books", data={"title": "Invisible Cities", "publication_year": "soon"})
        [book] = books.find_by_title("Invisible Cities")
        assert book.publication_year is None

    def test_edit_book(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisble Cities")
        response = client.post(
            f"/books/{book.id}/edit",
            data={"title": "Invisible Cities", "author": "Italo Calvino", "publication_year": ""},
        )
        assert response.status_code == 302
        assert response.headers["Location"] == f"/books/{book.id}"
        updated = books.get_by_id(book.id)
        assert updated is not None
        assert updated.title == "Invisible Cities"
        assert updated.updated_at > book.updated_at

    def test_edit_notes(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities")
        client.post(f"/books/{book.id}/notes", data={"notes": "Cities of memory."})
        updated = books.get_by_id(book.id)
        assert updated is not None
        assert updated.notes == "Cities of memory."

    def test_delete_book(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities")
        response = client.post(f"/books/{book.id}/delete")
        assert response.status_code == 302
        assert books.get_by_id(book.id) is None

    def test_delete_missing_book(self, client: FlaskClient) -> None:
        response = client.post("/books/no-such-id/delete")
        assert response.status_code == 404
        assert response.data == b"Book not found"


class TestDownload:
    """Serving book files from the library root."""

    def test_download(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities", filepath="calvino/cities.epub")
        response = client.get(f"/books/{book.id}/download")
        assert response.status_code == 200
        assert response.data == b"PK fake epub"
        assert response.mimetype == "application/epub+zip"
        assert "attachment" in response.headers["Content-Disposition"]
        assert "cities.epub" in response.headers["Content-Disposition"]

    def test_no_filepath(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisible Cities")
        assert client.get(f"/books/{book.id}/download").status_code == 404

    def test_missing_file(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Gone", filepath="calvino/gone.pdf")
        response = client.get(f"/books/{book.id}/download")
        assert response.status_code == 404
        assert response.data == b"File not found on disk"

    def test_path_outside_library(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Secret", filepath="../secret.txt")
        response = client.get(f"/books/{book.id}/download")
        assert response.status_code == 404
        assert b"outside the library" not in response.data

    def test_unknown_book(self, client: FlaskClient) -> None:
        assert client.get("/books/no-such-id/download").status_code == 404


class TestQuickAdd:
    """Quick add identifies a book through the completion API."""

    @pytest.fixture(autouse=True)
    def _logged_in(self, client: FlaskClient) -> None:
        _signup(client)

    def test_adds_identified_book(
        self, client: FlaskClient, books: BookCatalog, poster: FakePoster
    ) -> None:
        response = client.post("/books/quick-add", data={"query": "name of the rose eco"})
        assert response.status_code == 302
        [book] = books.find_by_title("The Name of the Rose")
        assert book.author == "Umberto Eco"
        assert book.publication_year == 1980
        assert response.headers["Location"] == f"/books/{book.id}"
        assert poster.requests[0][1]["model"] == "gpt-5-nano"

    def test_empty_query(self, client: FlaskClient, poster: FakePoster) -> None:
        response = client.post("/books/quick-add", data={"query": ""})
        assert b"Please enter a book" in response.data
        assert poster.requests == []

    def test_unparseable_reply(self, client: FlaskClient, books: BookCatalog) -> None:
        app_poster = FakePoster([chat_response("no idea")])
        client.application.extensions["alaya_gpt"] = GptClient(
            GptConfig(api_key="sk-test"), http_client=app_poster
        )
        response = client.post("/books/quick-add", data={"query": "mystery"})
        assert b"Could not identify book" in response.data
        assert books.count_books() == 0

    def test_without_api_key(self, client: FlaskClient) -> None:
        client.application.extensions["alaya_gpt"] = GptClient(
            GptConfig(api_key=None), http_client=FakePoster()
        )
        response = client.post("/books/quick-add", data={"query": "anything"})
        assert b"API key not configured" in response.data


def _use_replies(
    client: FlaskClient, *responses: dict, api_key: str | None = "sk-test"
) -> FakePoster:
    """Point the app's completion client at a fresh FakePoster."""
    app_poster = FakePoster(list(responses))
    client.application.extensions["alaya_gpt"] = GptClient(
        GptConfig(api_key=api_key), http_client=app_poster
    )
    return app_poster


class TestEditChat:
    """Editing a book by plain-language instruction, then applying the proposal."""

    def test_requires_login(self, client: FlaskClient, books: BookCatalog) -> None:
        book = books.add_book("Invisble Cities")
        for response in (
            client.get(f"/books/{book.id}/edit-chat"),
            client.post(f"/books/{book.id}/edit-chat", data={"instruction": "fix it"}),
            client.post(f"/books/{book.id}/edit-chat/apply", data={"title": "Hijacked"}),
        ):
            assert response.status_code == 302
            assert response.headers["Location"].endswith("/login")
        unchanged = books.get_by_id(book.id)
        assert unchanged is not None
        assert unchanged.title == "Invisble Cities"

    def test_page_shows_current_details(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities", author="Calvino")
        response = client.get(f"/books/{book.id}/edit-chat")
        assert response.status_code == 200
        assert b"Invisble Cities" in response.data
        assert b"gpt-5-nano" in response.data

    def test_missing_book_redirects_home(self, client: FlaskClient) -> None:
        _signup(client)
        response = client.get("/books/no-such-id/edit-chat")
        assert response.status_code == 302
        assert response.headers["Location"] == "/"

    def test_proposes_without_saving(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities", author="Calvino")
        app_poster = _use_replies(client, EDITED_BOOK_RESPONSE)

        response = client.post(
            f"/books/{book.id}/edit-chat",
            data={"instruction": "fix the title typo and use the full author name"},
        )

        assert response.status_code == 200
        assert b'value="Italo Calvino"' in response.data
        assert b'value="1972"' in response.data
        prompt = app_poster.requests[0][1]["messages"][1]["content"]
        assert "Invisble Cities" in prompt
        assert "fix the title typo" in prompt
        unchanged = books.get_by_id(book.id)
        assert unchanged is not None
        assert unchanged.author == "Calvino"

    def test_model_override(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities")
        app_poster = _use_replies(client, EDITED_BOOK_RESPONSE)
        client.post(
            f"/books/{book.id}/edit-chat",
            data={"instruction": "fix the typo", "model": "gpt-4o-mini"},
        )
        assert app_poster.requests[0][1]["model"] == "gpt-4o-mini"

    def test_apply_saves_proposal(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities", author="Calvino")
        response = client.post(
            f"/books/{book.id}/edit-chat/apply",
            data={
                "title": "Invisible Cities",
                "author": "Italo Calvino",
                "publication_year": "1972",
            },
        )
        assert response.status_code == 302
        assert response.headers["Location"] == f"/books/{book.id}"
        updated = books.get_by_id(book.id)
        assert updated is not None
        assert updated.title == "Invisible Cities"
        assert updated.author == "Italo Calvino"
        assert updated.publication_year == 1972

    def test_apply_without_title_changes_nothing(
        self, client: FlaskClient, books: BookCatalog
    ) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities")
        response = client.post(f"/books/{book.id}/edit-chat/apply", data={"title": " "})
        assert response.status_code == 302
        assert response.headers["Location"] == f"/books/{book.id}/edit-chat"
        unchanged = books.get_by_id(book.id)
        assert unchanged is not None
        assert unchanged.title == "Invisble Cities"

    def test_empty_instruction(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities")
        app_poster = _use_replies(client)
        response = client.post(f"/books/{book.id}/edit-chat", data={"instruction": "  "})
        assert b"Please enter an instruction" in response.data
        assert app_poster.requests == []

    def test_without_api_key(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities")
        app_poster = _use_replies(client, api_key=None)
        response = client.post(f"/books/{book.id}/edit-chat", data={"instruction": "fix it"})
        assert b"API key not configured" in response.data
        assert app_poster.requests == []

    def test_unparseable_reply(self, client: FlaskClient, books: BookCatalog) -> None:
        _signup(client)
        book = books.add_book("Invisble Cities")
        _use_replies(client, chat_response("Sure, I fixed it!"))
        response = client.post(f"/books/{book.id}/edit-chat", data={"instruction": "fix it"})
        assert response.status_code == 200
        assert b"AI error: Failed to parse book metadata" in response.data
        assert b"Proposed changes" not in response.data
