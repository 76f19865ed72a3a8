# bible_fetcher.py
# Verse lookups against the BibleGet API plus the book/chapter/verse index used for random picks.
# Blocking httpx calls: run these from the scheduler's background pool, never from the main loop.

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import httpx

import logic


def _default_log(*args):
    print("[fetcher]", *args, flush=True)


@dataclass(frozen=True)
class Verse:
    reference: str   # e.g. "John 3:16"
    text: str


@dataclass(frozen=True)
class BibleIndex:
    """
    Snapshot of the version's structure. Built once per load and swapped in whole.

    books:        book name -> chapter count (number of chapter entries, not the max chapter number)
    verse_counts: book name -> {chapter number -> verse count}
    """
    books: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    verse_counts: Mapping[str, Mapping[int, int]] = field(default_factory=lambda: MappingProxyType({}))
    loaded: bool = False


EMPTY_INDEX = BibleIndex()

# Why a random pick came back empty
NOT_LOADED = "not_loaded"
LOOKUP_FAILED = "lookup_failed"


class MetadataError(Exception):
    """The metadata endpoint answered with a non-empty errors list."""

    def __init__(self, errors: list):
        super().__init__(f"BibleGet errors: {errors}")
        self.errors = errors


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def query_token(book: str, chapter: int, verse: int) -> str:
    # BibleGet wants "John3:16", no space between book and chapter
    return f"{book}{chapter}:{verse}"


def reference_for(book: str, chapter: int, verse: int) -> str:
    return f"{book} {chapter}:{verse}"


def parse_index(data: Any, version: str) -> Optional[BibleIndex]:
    """
    Turns a metadata.php response into a loaded BibleIndex.
    Returns None if the document is unusable (version missing, no books).
    Raises MetadataError if the API reported errors.
    """
    if not isinstance(data, dict):
        return None
    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        raise MetadataError(errors)

    indexes = data.get("indexes")
    if not isinstance(indexes, dict):
        return None
    books_raw = indexes.get(version)
    if not isinstance(books_raw, list) or not books_raw:
        return None

    books: dict[str, int] = {}
    verse_counts: dict[str, Mapping[int, int]] = {}
    for book in books_raw:
        if not isinstance(book, dict):
            continue
        name = book.get("name")
        if not isinstance(name, str) or not name:
            continue
        chapters = book.get("chapters")
        if not isinstance(chapters, list) or not chapters:
            continue
        books[name] = len(chapters)

        per_chapter: dict[int, int] = {}
        for ch in chapters:
            if not isinstance(ch, dict):
                continue
            number = _as_int(ch.get("number"))
            verses = _as_int(ch.get("verses"))
            if number is not None and verses is not None and verses > 0:
                per_chapter[number] = verses
        if per_chapter:
            verse_counts[name] = MappingProxyType(per_chapter)

    return BibleIndex(
        books=MappingProxyType(books),
        verse_counts=MappingProxyType(verse_counts),
        loaded=True,
    )


class BibleFetcher:
    """
    Talks to the two BibleGet endpoints and keeps the current BibleIndex.
    Never raises to its caller: every failure comes back as None (or False for load()).
    """

    def __init__(
        self,
        api_base: str | None = None,
        metadata_url: str | None = None,
        version: str | None = None,
        app_id: str | None = None,
        verse_timeout: float | None = None,
        metadata_timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
        rng: random.Random | None = None,
        log_fn: Callable[..., None] | None = None,
    ):
        self.api_base = api_base or logic.API_BASE
        self.metadata_url = metadata_url or logic.METADATA_URL
        self.version = version or logic.VERSION
        self.app_id = app_id or logic.APP_ID
        self.verse_timeout = verse_timeout or logic.VERSE_TIMEOUT
        self.metadata_timeout = metadata_timeout or logic.METADATA_TIMEOUT
        self._transport = transport
        self._rng = rng or random.Random()
        self._log = log_fn or _default_log

        self._lock = threading.Lock()
        self._index: BibleIndex = EMPTY_INDEX
        self._client: httpx.Client | None = None

    # ---- Wiring helpers -------------------------------------------------- #
    def set_logger(self, log_fn: Callable[..., None]) -> None:
        self._log = log_fn or _default_log

    def _http(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    headers={"Accept": "application/json", "User-Agent": logic.UA},
                    transport=self._transport,
                )
            return self._client

    def close(self) -> None:
        with self._lock:
            c, self._client = self._client, None
        if c is not None:
            c.close()

    # ---- Index state ----------------------------------------------------- #
    @property
    def index(self) -> BibleIndex:
        with self._lock:
            return self._index

    @property
    def is_loaded(self) -> bool:
        return self.index.loaded

    @property
    def book_count(self) -> int:
        return len(self.index.books)

    def _publish(self, new_index: BibleIndex) -> None:
        with self._lock:
            self._index = new_index

    # ---- Metadata -------------------------------------------------------- #
    def load(self) -> bool:
        """
        Downloads the version index and swaps it in. Returns True on success.
        On any failure the previously published index stays as it was.
        """
        params = {
            "query": "versionindex",
            "versions": self.version,
            "return": "json",
            "appid": self.app_id,
        }
        try:
            r = self._http().get(self.metadata_url, params=params, timeout=self.metadata_timeout)
            if not r.is_success:
                self._log(f"⚠️ Metadata request failed: HTTP {r.status_code}")
                return False
            data = r.json()
            new_index = parse_index(data, self.version)
        except MetadataError as e:
            self._log("❌", e)
            return False
        except httpx.HTTPError as e:
            self._log("❌ Metadata request error:", repr(e))
            return False
        except ValueError as e:
            self._log("❌ Metadata response is not valid JSON:", repr(e))
            return False

        if new_index is None:
            self._log(f"⚠️ Metadata has no usable book list for {self.version}.")
            return False

        self._publish(new_index)
        self._log(f"📚 Index loaded: {len(new_index.books)} books, "
                  f"{len(new_index.verse_counts)} with verse counts ({self.version}).")
        return True

    # ---- Verses ---------------------------------------------------------- #
    def fetch_verse(self, book: str, chapter: int, verse: int) -> Optional[Verse]:
        params = {
            "query": query_token(book, chapter, verse),
            "version": self.version,
            "return": "json",
            "appid": self.app_id,
        }
        try:
            r = self._http().get(self.api_base, params=params, timeout=self.verse_timeout)
            if not r.is_success:
                self._log(f"⚠️ Verse {params['query']}: HTTP {r.status_code}")
                return None
            data = r.json()
        except httpx.HTTPError as e:
            self._log(f"❌ Verse {params['query']} request error:", repr(e))
            return None
        except ValueError as e:
            self._log(f"❌ Verse {params['query']} response is not valid JSON:", repr(e))
            return None

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or not results:
            return None
        first = results[0]
        text = first.get("text") if isinstance(first, dict) else None
        if not isinstance(text, str):
            return None
        return Verse(reference_for(book, chapter, verse), text.strip())

    def get_verse(self, book: str, chapter: int, verse: int) -> Optional[str]:
        """Text only, for callers that don't need the reference."""
        full = self.fetch_verse(book, chapter, verse)
        return full.text if full else None

    def pick_random_reference(self) -> Optional[tuple[str, int, int]]:
        """
        Uniform over books present, then over that book's chapters, then over 1..verses.
        Not uniform over all verses: short books are picked as often as long ones.
        """
        idx = self.index
        if not idx.loaded or not idx.verse_counts:
            return None
        book = self._rng.choice(list(idx.verse_counts.keys()))
        chapters = idx.verse_counts.get(book)
        if not chapters:
            return None
        chapter = self._rng.choice(list(chapters.keys()))
        max_verse = chapters.get(chapter)
        if not max_verse or max_verse <= 0:
            return None
        return book, chapter, self._rng.randint(1, max_verse)

    def fetch_random(self) -> tuple[Optional[Verse], Optional[str]]:
        """
        Random verse plus why it failed: NOT_LOADED (no usable index, no request made)
        or LOOKUP_FAILED. The reason is None on success.
        """
        picked = self.pick_random_reference()
        if picked is None:
            return None, NOT_LOADED
        v = self.fetch_verse(*picked)
        return v, (None if v else LOOKUP_FAILED)

    def fetch_random_verse(self) -> Optional[Verse]:
        return self.fetch_random()[0]


# Global instance, wired up by main.py
fetcher = BibleFetcher()


def set_logger(log_fn: Callable[..., None]) -> None:
    fetcher.set_logger(log_fn)


def load_metadata() -> bool:
    return fetcher.load()


def fetch_verse(book: str, chapter: int, verse: int) -> Optional[Verse]:
    return fetcher.fetch_verse(book, chapter, verse)


def fetch_random_verse() -> Optional[Verse]:
    return fetcher.fetch_random_verse()


def get_verse(book: str, chapter: int, verse: int) -> Optional[str]:
    return fetcher.get_verse(book, chapter, verse)
