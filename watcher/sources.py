"""
Default set of monitored changelog pages.
"""

from watcher.models import Source


DEFAULT_SOURCES = (
    Source(
        name="windsurf",
        url="https://windsurf.com/changelog",
        extraction_strategy="windsurf",
    ),
    Source(
        name="cursor",
        url="https://www.cursor.com/ja/changelog",
        extraction_strategy="cursor",
    ),
    Source(
        name="GitHub Copilot",
        url="https://github.blog/changelog/label/copilot/",
        extraction_strategy="github-changelog",
    ),
    Source(
        name="Roo Code",
        url="https://github.com/RooVetGit/Roo-Code/releases",
        extraction_strategy="github-releases",
    ),
    Source(
        name="Cline",
        url="https://github.com/cline/cline/releases",
        extraction_strategy="github-releases",
    ),
)
