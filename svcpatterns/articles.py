"""Article listing backed by a cache first and a database second."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol, Union

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "article:"
CACHE_TTL_SECONDS = 600


@dataclass(frozen=True)
class Article:
    id: int = 0
    title: str = ""
    author: str = ""
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form; empty fields are left out."""
        return {key: value for key, value in asdict(self).items() if value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Article":
        return cls(
            id=int(data.get("id", 0)),
            title=str(data.get("title", "")),
            author=str(data.get("author", "")),
            content=str(data.get("content", "")),
        )


class DataUnavailableError(LookupError):
    """Raised when a rate-limited request cannot be served from the cache."""


class ArticleCache(Protocol):
    def get(self, key: str) -> Optional[Union[bytes, str]]: ...

    def set(self, key: str, value: str, ex: Optional[int] = None) -> Any: ...


class ArticleStore(Protocol):
    def find_by_author(self, author: str) -> list[Article]: ...


class SqliteArticleStore:
    """Article table kept in an SQLite database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS articles ("
                "id INTEGER PRIMARY KEY, title TEXT, author TEXT, content TEXT)"
            )

    def add(self, article: Article) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO articles (id, title, author, content) VALUES (?, ?, ?, ?)",
                (article.id, article.title, article.author, article.content),
            )

    def find_by_author(self, author: str) -> list[Article]:
        rows = self._conn.execute(
            "SELECT id, title, author, content FROM articles "
            "WHERE author = ? ORDER BY id",
            (author,),
        )
        return [Article(*row) for row in rows]


class ArticleService:
    """Lists an author's articles, consulting the database only when allowed."""

    def __init__(self, cache: ArticleCache, store: ArticleStore) -> None:
        self._cache = cache
        self._store = store

    def list_articles(self, author: str, rate_limited: bool = False) -> list[Article]:
        """Return the author's articles.

        The cache is always consulted. On a miss, a rate-limited request
        raises DataUnavailableError; otherwise the store is queried and the
        result written back to the cache.
        """
        key = CACHE_KEY_PREFIX + author
        cached = self._read_cache(key)
        if cached is not None:
            return cached
        if rate_limited:
            raise DataUnavailableError(f"articles of {author!r} are not cached")
        articles = self._store.find_by_author(author)
        self._write_cache(key, articles)
        return articles

    def _read_cache(self, key: str) -> Optional[list[Article]]:
        try:
            raw = self._cache.get(key)
        except Exception:  # any cache failure is treated as a miss
            logger.warning("cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            if data is None:
                return []
            return [Article.from_dict(item) for item in data]
        except (ValueError, TypeError, AttributeError):
            logger.warning("undecodable cache entry for %s", key)
            return None

    def _write_cache(self, key: str, articles: list[Article]) -> None:
        payload = json.dumps([a.to_dict() for a in articles], ensure_ascii=False)
        try:
            self._cache.set(key, payload, ex=CACHE_TTL_SECONDS)
        except Exception:
            logger.warning("cache write failed for %s", key, exc_info=True)