# ABOUTME: Completion API package for book summaries and metadata extraction.
# ABOUTME: Exports the client, its configuration, and its error types.

from alaya.gpt.client import (
    DEFAULT_MODEL,
    ExtractedBook,
    GptClient,
    GptConfig,
    MissingApiKeyError,
)
from alaya.gpt.http import AlayaHttpClient, SummaryError

__all__ = [
    "DEFAULT_MODEL",
    "AlayaHttpClient",
    "ExtractedBook",
    "GptClient",
    "GptConfig",
    "MissingApiKeyError",
    "SummaryError",
]
