import random
import threading

import httpx
import pytest

from bible_fetcher import BibleFetcher
from scheduler import Scheduler

API_BASE = "https://bible.test/v3/"
METADATA_URL = "https://bible.test/metadata.php"

JOHN_INDEX = {
    "indexes": {
        "NABRE": [
            {"name": "John", "chapters": [{"number": 1, "verses": 51}, {"number": 2, "verses": 25}]}
        ]
    }
}


class Endpoints:
    """Fake BibleGet server for httpx.MockTransport. Replies are (status, body) pairs."""

    def __init__(self):
        self.metadata = (200, JOHN_INDEX)
        self.verses: dict[str, tuple] = {}
        self.verse_default = (404, None)
        self.requests: list[httpx.Request] = []
        self.error: Exception | None = None

    @property
    def verse_calls(self) -> int:
        return sum(1 for r in self.requests if r.url.path == "/v3/")

    @staticmethod
    def _respond(reply: tuple) -> httpx.Response:
        status, body = reply
        if body is None:
            return httpx.Response(status)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path == "/metadata.php":
            return self._respond(self.metadata)
        return self._respond(self.verses.get(request.url.params.get("query"), self.verse_default))


class FakeChat:
    def __init__(self):
        self.lines: list[tuple[str, str, str, str]] = []
        self.done = threading.Event()
        self.expect = None

    def send(self, recipient, text, style="info"):
        self.lines.append((recipient, text, style, threading.current_thread().name))
        if self.expect is not None and len(self.lines) >= self.expect:
            self.done.set()

    def texts(self):
        return [t for _, t, _, _ in self.lines]


@pytest.fixture
def endpoints():
    return Endpoints()


@pytest.fixture
def make_fetcher(endpoints):
    made = []

    def _make(seed: int = 7, log_fn=None):
        f = BibleFetcher(
            api_base=API_BASE,
            metadata_url=METADATA_URL,
            version="NABRE",
            app_id="testapp",
            transport=httpx.MockTransport(endpoints.handler),
            rng=random.Random(seed),
            log_fn=log_fn or (lambda *a: None),
        )
        made.append(f)
        return f

    yield _make
    for f in made:
        f.close()


@pytest.fixture
def fetcher(make_fetcher):
    return make_fetcher()


@pytest.fixture
def scheduler():
    s = Scheduler(workers=2, log_fn=lambda *a: None)
    s.start()
    yield s
    s.stop()


@pytest.fixture
def chat():
    return FakeChat()
