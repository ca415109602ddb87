"""Citation harvesting from response annotations."""

from __future__ import annotations

from typing import Any, Iterable

DEFAULT_MAX_CITATIONS = 25


def extract_citations(message: dict[str, Any] | None) -> list[str]:
    """Return ``url_citation`` URLs from a message's annotations, in order."""
    if not isinstance(message, dict):
        return []
    annotations = message.get("annotations")
    if not isinstance(annotations, list):
        return []
    urls: list[str] = []
    for ann in annotations:
        if not isinstance(ann, dict) or ann.get("type") != "url_citation":
            continue
        cite = ann.get("url_citation")
        url = cite.get("url") if isinstance(cite, dict) else None
        if url:
            urls.append(str(url))
    return urls


class CitationSet:
    """Ordered, duplicate-free, capped set of citation URLs.

    Only grows: URLs are added in first-seen order until ``max_size`` is
    reached, after which further URLs are ignored.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_CITATIONS) -> None:
        self.max_size = max_size
        self._urls: dict[str, None] = {}

    def add(self, urls: Iterable[str]) -> int:
        """Merge *urls*; return how many were newly added."""
        added = 0
        for url in urls:
            if len(self._urls) >= self.max_size:
                break
            if url not in self._urls:
                self._urls[url] = None
                added += 1
        return added

    def merge_message(self, message: dict[str, Any] | None) -> int:
        return self.add(extract_citations(message))

    def as_list(self) -> list[str]:
        return list(self._urls)

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url: object) -> bool:
        return url in self._urls
