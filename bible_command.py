# bible_command.py
# The /bible command: "/bible <book> <chapter> <verse>" or "/bible random".
# Lookups run on the scheduler's pool, replies are sent from the main loop.

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional, Sequence

from bible_fetcher import NOT_LOADED, BibleFetcher, Verse
from chat import ChatSink
from logic import log
from scheduler import Scheduler

USAGE = [
    "Usage: /bible <book> <chapter> <verse> OR /bible random",
    "Examples: /bible John 3 16  or  /bible random",
]


@dataclass(frozen=True)
class Sender:
    name: str
    is_player: bool = True


def capitalize_first(s: str) -> str:
    # API likes "John", not "john" or "JOHN"
    return s[:1].upper() + s[1:].lower()


def _positive_int(s: str) -> Optional[int]:
    try:
        n = int(s)
    except ValueError:
        return None
    return n if n > 0 else None


class BibleCommand:
    def __init__(self, fetcher: BibleFetcher, scheduler: Scheduler, chat: ChatSink):
        self.fetcher = fetcher
        self.scheduler = scheduler
        self.chat = chat

    def dispatch(self, sender: Sender, args: Sequence[str]) -> None:
        """Queues the command onto the main loop, so every reply line comes from there."""
        self.scheduler.run_task(self.on_command, sender, list(args))

    def on_command(self, sender: Sender, args: Sequence[str]) -> bool:
        """
        Runs on the main loop. Returns True when the command was handled
        (including usage/validation replies).
        """
        if not sender.is_player:
            self.chat.send(sender.name, "Hey, only players can request verses!", "error")
            return True

        if len(args) == 1 and args[0].lower() == "random":
            self._handle_random(sender)
            return True

        if len(args) != 3:
            for line in USAGE:
                self.chat.send(sender.name, line, "warning")
            return True

        book = capitalize_first(args[0])
        chapter = _positive_int(args[1])
        verse = _positive_int(args[2])
        if chapter is None or verse is None:
            self.chat.send(sender.name, "Chapter and verse must be positive numbers!", "error")
            return True

        version = self.fetcher.version
        self.chat.send(sender.name, f"Fetching {book} {chapter}:{verse} from {version}... ⏳", "notice")
        log(f"📖 {sender.name} requested {book} {chapter}:{verse}")

        future = self.scheduler.run_async(self.fetcher.fetch_verse, book, chapter, verse)
        self.scheduler.then(future, lambda f: self._deliver_verse(sender, f))
        return True

    def _handle_random(self, sender: Sender) -> None:
        self.chat.send(sender.name, f"Rolling for a random {self.fetcher.version} verse... 🎲", "notice")
        log(f"🎲 {sender.name} requested a random verse")
        future = self.scheduler.run_async(self.fetcher.fetch_random)
        self.scheduler.then(future, lambda f: self._deliver_random(sender, f))

    # ---- Main-loop replies ------------------------------------------------ #
    def _result(self, future: Future):
        if future.cancelled():
            return None
        exc = future.exception()
        if exc is not None:
            log("❌ Verse lookup crashed:", repr(exc))
            return None
        return future.result()

    def _send_verse(self, sender: Sender, verse: Verse, suffix: str) -> None:
        self.chat.send(sender.name, f"📖 {verse.reference} ({suffix})", "header")
        self.chat.send(sender.name, verse.text, "success")

    def _deliver_verse(self, sender: Sender, future: Future) -> None:
        verse = self._result(future)
        if verse and verse.text:
            self._send_verse(sender, verse, self.fetcher.version)
        else:
            self.chat.send(sender.name, "Oops! Couldn't find that verse. Check spelling? (Try 'John' not 'jhon')", "error")

    def _deliver_random(self, sender: Sender, future: Future) -> None:
        # (verse, reason) from BibleFetcher.fetch_random
        verse, reason = self._result(future) or (None, None)
        if verse and verse.text:
            self._send_verse(sender, verse, f"{self.fetcher.version} – Random Pick!")
        elif reason == NOT_LOADED:
            self.chat.send(sender.name, "Couldn't fetch random verse yet – Bible index loading! Try again in 5 secs. ⏳", "error")
        else:
            self.chat.send(sender.name, "Couldn't fetch a random verse right now. Try again in a moment.", "error")
