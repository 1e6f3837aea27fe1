"""
Per-source extraction strategies.

Each strategy reduces a raw changelog page to the fragment that matters for
change detection, usually the newest entry. Strategies are pure: the same
input always yields the same output, and a page without a match yields an
empty string instead of an error.
"""

import re
from typing import Dict, Mapping, Optional

from bs4 import BeautifulSoup
import structlog

from .errors import ExtractionError
from .models import Source

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r'\s+')

# Elements that never carry changelog text
NOISE_TAGS = ["script", "style", "noscript", "svg", "template"]


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    return _WHITESPACE.sub(' ', text).strip()


def _parse(content: str) -> BeautifulSoup:
    soup = BeautifulSoup(content, 'html.parser')
    for element in soup(NOISE_TAGS):
        element.decompose()
    return soup


class ExtractionStrategy:
    """Interface for extraction strategies."""

    name = "base"

    def extract(self, content: str) -> str:
        raise NotImplementedError


class RawContentExtractor(ExtractionStrategy):
    """Use the page content unchanged."""

    name = "raw"

    def extract(self, content: str) -> str:
        return content


class FirstElementExtractor(ExtractionStrategy):
    """Text of the first element matching a tag and optional class/attributes."""

    name = "first-element"

    def __init__(self, tag: str, class_: Optional[str] = None, attrs: Optional[Dict[str, str]] = None):
        self.tag = tag
        self.class_ = class_
        self.attrs = dict(attrs or {})

    def extract(self, content: str) -> str:
        soup = _parse(content)
        kwargs = {"attrs": self.attrs}
        if self.class_:
            kwargs["class_"] = self.class_
        element = soup.find(self.tag, **kwargs)
        if element is None:
            return ""
        return normalize_text(element.get_text(" "))

    def __repr__(self) -> str:
        return f"FirstElementExtractor(tag={self.tag!r}, class_={self.class_!r})"


class CssSelectorExtractor(ExtractionStrategy):
    """Text of the first element matching a CSS selector."""

    name = "css-selector"

    def __init__(self, selector: str):
        self.selector = selector

    def extract(self, content: str) -> str:
        element = _parse(content).select_one(self.selector)
        if element is None:
            return ""
        return normalize_text(element.get_text(" "))

    def __repr__(self) -> str:
        return f"CssSelectorExtractor(selector={self.selector!r})"


class ExtractorRegistry:
    """
    Maps strategy identifiers to extraction strategies.

    Sources whose strategy is unset or not registered fall back to the
    raw content extractor.
    """

    def __init__(
        self,
        strategies: Optional[Mapping[str, ExtractionStrategy]] = None,
        fallback: Optional[ExtractionStrategy] = None
    ):
        self.strategies: Dict[str, ExtractionStrategy] = dict(strategies or {})
        self.fallback = fallback or RawContentExtractor()
        self.logger = logger.bind(component="extractor_registry")

    def register(self, identifier: str, strategy: ExtractionStrategy) -> None:
        """Register or replace the strategy for an identifier."""
        self.strategies[identifier] = strategy

    def get(self, source: Source) -> ExtractionStrategy:
        """Resolve the strategy for a source."""
        if source.extraction_strategy and source.extraction_strategy in self.strategies:
            return self.strategies[source.extraction_strategy]
        if source.extraction_strategy:
            self.logger.debug(
                "Unknown extraction strategy, using fallback",
                source=source.name,
                strategy=source.extraction_strategy
            )
        return self.fallback

    def extract(self, source: Source, content: str) -> str:
        """
        Extract the relevant fragment of a source's page.

        Args:
            source: Source the content belongs to
            content: Raw page content

        Returns:
            Extracted content (possibly empty)

        Raises:
            ExtractionError: If the strategy fails or returns a non-string
        """
        strategy = self.get(source)
        try:
            extracted = strategy.extract(content)
        except Exception as e:
            raise ExtractionError(
                f"strategy {strategy.name} failed for {source.name}: {e}"
            ) from e

        if not isinstance(extracted, str):
            raise ExtractionError(
                f"strategy {strategy.name} returned {type(extracted).__name__} for {source.name}"
            )

        if not extracted and not isinstance(strategy, RawContentExtractor):
            self.logger.warning(
                "Extraction strategy matched nothing, page markup may have changed",
                source=source.name,
                strategy=strategy.name
            )

        self.logger.debug(
            "Extracted content",
            source=source.name,
            strategy=strategy.name,
            length=len(extracted)
        )
        return extracted


def default_registry() -> ExtractorRegistry:
    """Registry with strategies for the default changelog sources."""
    return ExtractorRegistry({
        "windsurf": CssSelectorExtractor("main article, article"),
        "cursor": FirstElementExtractor("article"),
        "github-changelog": FirstElementExtractor("article"),
        "github-releases": CssSelectorExtractor("section, div.release"),
    })
