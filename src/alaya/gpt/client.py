# ABOUTME: Client for the OpenAI chat completions API.
# ABOUTME: Produces book summaries, extracts metadata from free text and applies edit instructions.

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from alaya.config import load_env_file
from alaya.gpt.http import AlayaHttpClient, JsonPoster, SummaryError

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-5-nano"
UNAVAILABLE_SUMMARY = "Summary unavailable."


class MissingApiKeyError(SummaryError):
    """Raised when a request is attempted without OPENAI_API_KEY."""

    def __init__(self) -> None:
        super().__init__("OPENAI_API_KEY is not set")


@dataclass
class GptConfig:
    api_key: str | None = None
    model: str = DEFAULT_MODEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GptConfig":
        if environ is None:
            load_env_file()
        env = os.environ if environ is None else environ
        return cls(api_key=env.get("OPENAI_API_KEY") or None)


@dataclass
class ExtractedBook:
    """Book details identified by the model from a free-text query."""

    title: str
    author: str | None = None
    publication_year: int | None = None


def _message(role: str, content: str) -> dict[str, str]:
    return {"role": role, "content": content}


def _strip_code_fence(content: str) -> str:
    text = content.strip()
    for fence in ("```json", "```"):
        if text.startswith(fence):
            text = text[len(fence):]
            break
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _parse_year(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_book_reply(content: str) -> ExtractedBook:
    try:
        data = json.loads(_strip_code_fence(content))
    except json.JSONDecodeError as exc:
        raise SummaryError(f"Failed to parse book metadata: {exc}\nRaw: {content}") from exc

    if not isinstance(data, dict) or not str(data.get("title") or "").strip():
        raise SummaryError(f"Book metadata is missing a title\nRaw: {content}")

    author = data.get("author")
    return ExtractedBook(
        title=str(data["title"]).strip(),
        author=str(author).strip() if author else None,
        publication_year=_parse_year(data.get("publication_year")),
    )


class GptClient:
    """Thin wrapper over the chat completions endpoint.

    Uses a dependency-injected JsonPoster for testability; defaults to
    AlayaHttpClient.
    """

    def __init__(self, config: GptConfig, http_client: JsonPoster | None = None) -> None:
        self._config = config
        self._owned_http = AlayaHttpClient() if http_client is None else None
        self._http: JsonPoster = http_client or self._owned_http  # type: ignore[assignment]

    def close(self) -> None:
        """Close the HTTP client this instance created. Injected clients are left open."""
        if self._owned_http is not None:
            self._owned_http.close()

    def __enter__(self) -> "GptClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def has_api_key(self) -> bool:
        return self._config.api_key is not None

    def send_chat(self, messages: list[dict[str, str]], model: str | None = None) -> str:
        """Send a chat request and return the first non-blank reply.

        Raises:
            MissingApiKeyError: If no API key is configured.
            SummaryError: On HTTP failure or an empty/malformed response.
        """
        if self._config.api_key is None:
            raise MissingApiKeyError()

        payload = {"model": model or self._config.model, "messages": messages}
        logger.debug("Chat request model=%s messages=%s", payload["model"], messages)
        data = self._http.post_json(CHAT_COMPLETIONS_URL, payload, bearer=self._config.api_key)

        try:
            choices = data["choices"]
            contents = [choice["message"]["content"] or "" for choice in choices]
        except (KeyError, TypeError) as exc:
            raise SummaryError(f"Unexpected response shape: {data!r}") from exc

        for content in contents:
            if content.strip():
                return content.strip()
        raise SummaryError("Empty response from completion API")

    def summarize_book(self, title: str) -> str:
        """Ask for a single concise sentence summarizing the titled book."""
        prompt = (
            f'Give me a single concise sentence summarizing the book titled "{title}". '
            f'If you do not know it, reply with "{UNAVAILABLE_SUMMARY}"'
        )
        return self.send_chat(
            [
                _message("system", "You are a helpful literary assistant."),
                _message("user", prompt),
            ]
        )

    def extract_book_metadata(self, query: str, model: str | None = None) -> ExtractedBook:
        """Identify a book from free text and return its title, author and year.

        The model is also asked for an ISBN; the catalog does not store ISBNs,
        so it is ignored.

        Raises:
            SummaryError: If the reply is not a JSON object with a title.
        """
        prompt = (
            f'Identify this book: "{query}"\n\n'
            "Return the information as JSON with these fields:\n"
            "- title: the correct full title\n"
            "- author: the correct author name\n"
            "- isbn: the ISBN-13 if known, otherwise null\n"
            "- publication_year: the original publication year if known, otherwise null\n\n"
            "Return ONLY valid JSON, no other text."
        )
        content = self.send_chat(
            [
                _message(
                    "system",
                    "You are a knowledgeable librarian assistant. "
                    "Always respond with valid JSON only, no markdown or extra text.",
                ),
                _message("user", prompt),
            ],
            model=model,
        )

        return _parse_book_reply(content)

    def edit_book_with_instruction(
        self,
        title: str,
        author: str | None,
        publication_year: int | None,
        instruction: str,
        model: str | None = None,
    ) -> ExtractedBook:
        """Apply a plain-language edit instruction to a book's details.

        Returns the proposed title, author and year; nothing is saved.

        Raises:
            SummaryError: If the reply is not a JSON object with a title.
        """
        current = json.dumps(
            {"title": title, "author": author, "publication_year": publication_year}
        )
        prompt = (
            f"Current book details:\n{current}\n\n"
            f'Apply this instruction: "{instruction}"\n\n'
            "Return the updated details as JSON with these fields:\n"
            "- title: the book title\n"
            "- author: the author name, or null\n"
            "- publication_year: the publication year as a number, or null\n\n"
            "Keep fields the instruction does not mention unchanged. "
            "Return ONLY valid JSON, no other text."
        )
        content = self.send_chat(
            [
                _message(
                    "system",
                    "You are a careful librarian assistant editing catalog records. "
                    "Always respond with valid JSON only, no markdown or extra text.",
                ),
                _message("user", prompt),
            ],
            model=model,
        )
        return _parse_book_reply(content)
