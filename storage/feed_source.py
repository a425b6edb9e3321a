"""Readers that fetch the raw crowd-count feed text."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional, Protocol

import httpx

from settings import get_settings


class FeedUnavailableError(RuntimeError):
    """Raised when the feed as a whole cannot be fetched or decoded."""


class FeedSource(Protocol):
    name: str

    def read(self) -> str:
        ...


def decode_feed(data: bytes, source: str) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FeedUnavailableError(f"Feed {source!r} is not valid UTF-8.") from exc


class FileFeedSource:
    """Reads a feed file that a camera pipeline keeps appending to."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.name = str(path)

    def read(self) -> str:
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise FeedUnavailableError(f"Unable to read feed file {self.name!r}: {exc}") from exc
        return decode_feed(data, self.name)


class HttpFeedSource:
    """Fetches the feed over HTTP, bypassing intermediary caches."""

    def __init__(
        self,
        url: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 5.0,
    ) -> None:
        self.url = url
        self.name = url
        self._client = client or httpx.Client(timeout=timeout)

    def read(self) -> str:
        try:
            response = self._client.get(self.url, params={"t": int(time.time() * 1000)})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FeedUnavailableError(f"Failed to fetch feed {self.url!r}: {exc}") from exc
        return decode_feed(response.content, self.name)

    def close(self) -> None:
        self._client.close()


def build_feed_source() -> FeedSource:
    settings = get_settings()
    if settings.feed_url:
        return HttpFeedSource(settings.feed_url)
    return FileFeedSource(Path(settings.feed_path))
