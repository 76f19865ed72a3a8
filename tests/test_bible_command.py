from concurrent.futures import Future

from bible_command import BibleCommand, Sender, capitalize_first, USAGE

STEVE = Sender("Steve")


def _command(fetcher, scheduler, chat):
    return BibleCommand(fetcher, scheduler, chat)


def test_capitalize_first():
    assert capitalize_first("john") == "John"
    assert capitalize_first("JOHN") == "John"
    assert capitalize_first("j") == "J"
    assert capitalize_first("") == ""


def test_console_sender_is_rejected(fetcher, scheduler, chat, endpoints):
    cmd = _command(fetcher, scheduler, chat)
    assert cmd.on_command(Sender("CONSOLE", is_player=False), ["John", "3", "16"]) is True
    assert chat.lines == [("CONSOLE", "Hey, only players can request verses!", "error", chat.lines[0][3])]
    assert endpoints.requests == []


def test_wrong_argument_count_shows_usage(fetcher, scheduler, chat, endpoints):
    cmd = _command(fetcher, scheduler, chat)
    for args in ([], ["John"], ["John", "3"], ["John", "3", "16", "17"], ["random", "now"]):
        chat.lines.clear()
        assert cmd.on_command(STEVE, args) is True
        assert chat.texts() == USAGE
        assert {style for _, _, style, _ in chat.lines} == {"warning"}
    assert endpoints.requests == []


def test_non_numeric_chapter_or_verse(fetcher, scheduler, chat, endpoints):
    cmd = _command(fetcher, scheduler, chat)
    for args in (["John", "three", "16"], ["John", "3", "x"], ["John", "0", "16"], ["John", "3", "-1"]):
        chat.lines.clear()
        cmd.on_command(STEVE, args)
        assert chat.lines[0][1:3] == ("Chapter and verse must be positive numbers!", "error")
    assert endpoints.requests == []


def test_explicit_verse_is_delivered_on_main_loop(fetcher, scheduler, chat, endpoints):
    endpoints.verses["John3:16"] = (200, {"results": [{"text": " For God so loved the world... "}]})
    chat.expect = 3

    _command(fetcher, scheduler, chat).dispatch(STEVE, ["jOHN", "3", "16"])

    assert chat.done.wait(5)
    assert [(r, t, s) for r, t, s, _ in chat.lines] == [
        ("Steve", "Fetching John 3:16 from NABRE... ⏳", "notice"),
        ("Steve", "📖 John 3:16 (NABRE)", "header"),
        ("Steve", "For God so loved the world...", "success"),
    ]
    assert {thread for _, _, _, thread in chat.lines} == {"bible-main"}


def test_every_reply_comes_from_main_loop(fetcher, scheduler, chat, endpoints):
    cmd = _command(fetcher, scheduler, chat)
    # console reject (1) + usage (2) + bad number (1) + random notice and not-loaded reply (2)
    chat.expect = 6

    cmd.dispatch(Sender("CONSOLE", is_player=False), ["random"])
    cmd.dispatch(STEVE, ["john"])
    cmd.dispatch(STEVE, ["john", "x", "1"])
    cmd.dispatch(STEVE, ["random"])

    assert chat.done.wait(5)
    assert len(chat.lines) == 6
    assert {thread for _, _, _, thread in chat.lines} == {"bible-main"}


def test_random_with_empty_verse_counts_reports_not_loaded(fetcher, scheduler, chat, endpoints):
    # index loads, but no chapter carried a usable verse count
    endpoints.metadata = (200, {"indexes": {"NABRE": [{"name": "Tobit", "chapters": [{"number": 1}]}]}})
    assert fetcher.load() is True
    chat.expect = 2

    _command(fetcher, scheduler, chat).dispatch(STEVE, ["random"])

    assert chat.done.wait(5)
    assert "index loading" in chat.texts()[1]
    assert endpoints.verse_calls == 0


def test_random_reply_uses_reason_from_lookup(fetcher, scheduler, chat):
    cmd = _command(fetcher, scheduler, chat)
    fut = Future()
    fut.set_result((None, "lookup_failed"))

    # index state at delivery time does not change the message
    cmd._deliver_random(STEVE, fut)

    assert chat.texts() == ["Couldn't fetch a random verse right now. Try again in a moment."]


def test_explicit_verse_not_found(fetcher, scheduler, chat, endpoints):
    chat.expect = 2
    _command(fetcher, scheduler, chat).dispatch(STEVE, ["Jhon", "3", "16"])

    assert chat.done.wait(5)
    assert chat.lines[-1][1].startswith("Oops! Couldn't find that verse.")
    assert chat.lines[-1][2] == "error"


def test_random_before_index_loaded(fetcher, scheduler, chat, endpoints):
    chat.expect = 2
    _command(fetcher, scheduler, chat).dispatch(STEVE, ["RANDOM"])

    assert chat.done.wait(5)
    assert chat.texts()[0] == "Rolling for a random NABRE verse... 🎲"
    assert "index loading" in chat.texts()[1]
    assert endpoints.requests == []


def test_random_verse_after_load(fetcher, scheduler, chat, endpoints):
    fetcher.load()
    endpoints.verse_default = (200, {"results": [{"text": "In the beginning was the Word"}]})
    chat.expect = 3

    _command(fetcher, scheduler, chat).dispatch(STEVE, ["random"])

    assert chat.done.wait(5)
    header = chat.texts()[1]
    assert header.startswith("📖 John ")
    assert header.endswith("(NABRE – Random Pick!)")
    assert chat.texts()[2] == "In the beginning was the Word"


def test_random_lookup_failure_after_load(fetcher, scheduler, chat, endpoints):
    fetcher.load()
    chat.expect = 2

    _command(fetcher, scheduler, chat).dispatch(STEVE, ["random"])

    assert chat.done.wait(5)
    assert chat.texts()[1] == "Couldn't fetch a random verse right now. Try again in a moment."


def test_crashed_lookup_is_reported_as_not_found(fetcher, scheduler, chat):
    cmd = _command(fetcher, scheduler, chat)
    fut = Future()
    fut.set_exception(RuntimeError("boom"))

    cmd._deliver_verse(STEVE, fut)

    assert chat.lines[0][2] == "error"
    assert chat.lines[0][1].startswith("Oops!")
