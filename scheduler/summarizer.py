"""
Change summarization through the Gemini text-generation API.

GeminiSummarizer turns changed changelog content into a short description
for the notification email, and can also act as the external analyzer that
reads the latest update date of a page (external-date detection mode).
Summaries never fail the run: call failures yield a placeholder that names
the reason.
"""

from typing import Optional

import httpx
import structlog

from watcher.errors import ConfigurationError, SummarizationError
from watcher.models import Source

logger = structlog.get_logger(__name__)

PLACEHOLDER_PREFIX = "Summary unavailable"
NO_DATES = "No dates detected."

# Upper bound on page text sent in a single prompt
MAX_PROMPT_CONTENT_CHARS = 30000

SUMMARY_PROMPT = """\
The changelog at {url} ({name}) has changed.
Describe the most recent changelog entry in a few short sentences for a developer.
Mention new features, fixes and breaking changes. Do not add any preamble.
{previous}
Current changelog content:
{content}
"""

DATE_PROMPT = """\
Extract only the most recent date and time from the changelog entries of {url}.
Provide the output in a clean, machine-readable format (e.g., `YYYY-MM-DD HH:MM:SS` or ISO 8601).
Exclude all other text, labels, or metadata. If no timestamps are found, return "{no_dates}"

Changelog content:
{content}
"""


def placeholder(reason: str) -> str:
    """Diagnostic text used in place of a summary."""
    return f"{PLACEHOLDER_PREFIX}: {reason}"


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + " ..."


class Summarizer:
    """Interface for change summarizers."""

    async def summarize(self, source: Source, old_content: Optional[str], new_content: str) -> str:
        raise NotImplementedError


class VerbatimSummarizer(Summarizer):
    """Uses the changed content itself as the summary."""

    def __init__(self, max_chars: int = 2000):
        self.max_chars = max_chars

    async def summarize(self, source: Source, old_content: Optional[str], new_content: str) -> str:
        return truncate(new_content.strip(), self.max_chars)


class GeminiSummarizer(Summarizer):
    """Summarizer and update-date analyzer backed by Gemini generateContent."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the summarizer.

        Args:
            api_key: GEMINI_API_KEY; a missing key is reported on first use
            model: Gemini model name
            api_base: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used to stub the network)
        """
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.logger = logger.bind(component="summarizer")

        self.client_config = {"timeout": timeout}
        if transport is not None:
            self.client_config["transport"] = transport

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def generate(self, prompt: str) -> str:
        """
        Send a prompt and return the generated text.

        Raises:
            ConfigurationError: If no API key is configured
            SummarizationError: On network failure, HTTP error, malformed
                response or empty candidate text
        """
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY")

        payload = {"contents": [{"parts": [{"text": prompt}]}]}

        try:
            async with httpx.AsyncClient(**self.client_config) as client:
                response = await client.post(
                    self.endpoint,
                    params={"key": self.api_key},
                    json=payload
                )
        except httpx.HTTPError as e:
            raise SummarizationError(f"request failed: {e}") from e

        if response.status_code != 200:
            raise SummarizationError(f"API returned HTTP {response.status_code}")

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise SummarizationError(f"malformed response: {e!r}") from e

        if not isinstance(text, str) or not text.strip():
            raise SummarizationError("empty candidate text")

        return text.strip()

    async def summarize(self, source: Source, old_content: Optional[str], new_content: str) -> str:
        """
        Describe a change in natural language.

        Returns a placeholder instead of raising when the call fails.

        Raises:
            ConfigurationError: If no API key is configured
        """
        previous = ""
        if old_content:
            previous = (
                "Previous changelog content:\n"
                f"{truncate(old_content, MAX_PROMPT_CONTENT_CHARS // 2)}\n"
            )
        prompt = SUMMARY_PROMPT.format(
            url=source.url,
            name=source.name,
            previous=previous,
            content=truncate(new_content, MAX_PROMPT_CONTENT_CHARS)
        )

        try:
            summary = await self.generate(prompt)
        except SummarizationError as e:
            self.logger.warning("Summarization failed", source=source.name, error=str(e))
            return placeholder(str(e))

        self.logger.debug("Generated summary", source=source.name, length=len(summary))
        return summary

    async def extract_update_date(self, source: Source, content: str) -> str:
        """
        Ask for the latest update timestamp of a changelog page.

        The returned string is compared verbatim between runs.

        Raises:
            ConfigurationError: If no API key is configured
            SummarizationError: If the call fails
        """
        prompt = DATE_PROMPT.format(
            url=source.url,
            no_dates=NO_DATES,
            content=truncate(content, MAX_PROMPT_CONTENT_CHARS)
        )
        return await self.generate(prompt)
