# routes_bible.py
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

import bible_fetcher
from bible_command import BibleCommand, Sender, capitalize_first
from bible_fetcher import NOT_LOADED, Verse
from logic import check_api_key, log
from scheduler import scheduler

router = APIRouter()

# Set by main.py once the chat sink is known
command: Optional[BibleCommand] = None


class CommandPayload(BaseModel):
    sender: str
    args: list[str] = []
    is_player: bool = True


def _verse_json(v: Verse, random_pick: bool = False) -> dict:
    return {
        "reference": v.reference,
        "text": v.text,
        "version": bible_fetcher.fetcher.version,
        "random": random_pick,
    }


@router.post("/api/command/bible")
async def api_command_bible(p: CommandPayload, request: Request):
    """
    Entry point for the game server bridge: one chat command per request.
    Replies are delivered through the chat sink, not in this response.
    """
    check_api_key(request)
    if command is None:
        raise HTTPException(status_code=503, detail="command not ready")
    if not command.scheduler.running:
        raise HTTPException(status_code=503, detail="scheduler not running")
    if not p.sender.strip():
        raise HTTPException(status_code=422, detail="sender required")
    command.dispatch(Sender(p.sender.strip(), p.is_player), [a for a in p.args if a.strip()])
    return {"ok": True, "sender": p.sender.strip()}


@router.get("/api/bible/verse")
async def api_verse(
    request: Request,
    book: str = Query(..., min_length=1),
    chapter: int = Query(..., gt=0),
    verse: int = Query(..., gt=0),
):
    check_api_key(request)
    v = await run_in_threadpool(bible_fetcher.fetcher.fetch_verse, capitalize_first(book.strip()), chapter, verse)
    if v is None:
        raise HTTPException(status_code=404, detail=f"verse not found: {book} {chapter}:{verse}")
    return _verse_json(v)


@router.get("/api/bible/random")
async def api_random(request: Request):
    check_api_key(request)
    v, reason = await run_in_threadpool(bible_fetcher.fetcher.fetch_random)
    if reason == NOT_LOADED:
        raise HTTPException(status_code=503, detail="bible index not loaded yet")
    if v is None:
        raise HTTPException(status_code=404, detail="random verse lookup failed")
    return _verse_json(v, random_pick=True)


@router.get("/api/bible/index")
async def api_index(request: Request):
    check_api_key(request)
    f = bible_fetcher.fetcher
    idx = f.index
    return {
        "loaded": idx.loaded,
        "books": len(idx.books),
        "books_with_verses": len(idx.verse_counts),
        "version": f.version,
    }


@router.post("/api/bible/reload")
async def api_reload(request: Request):
    check_api_key(request)
    if not scheduler.running:
        raise HTTPException(status_code=503, detail="scheduler not running")
    future = scheduler.run_async(bible_fetcher.fetcher.load)
    scheduler.then(future, lambda f: log("♻️ Index reload", "ok" if f.result() else "failed"))
    return {"ok": True, "scheduled": True}
