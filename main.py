# main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

# --- Local Modules ---
import bible_fetcher
import logic
import routes_bible
from bible_command import BibleCommand
from chat import LogChat, MqttChat
from logic import log
from routes_bible import router as bible_router
from scheduler import scheduler

# --- Lifecycle & Startup ------------------------------------------------------

def _chat_sink():
    try:
        client = logic.init_mqtt()
    except Exception as e:
        log("⚠️ MQTT connect failed, chat goes to log:", repr(e))
        client = None
    return MqttChat(client) if client is not None else LogChat()

@asynccontextmanager
async def lifespan(app: FastAPI):
    log("🧩 Starting bible chat service …")
    scheduler.start()
    fetcher = bible_fetcher.fetcher
    routes_bible.command = BibleCommand(fetcher, scheduler, _chat_sink())

    # Index for /bible random, loaded in the background so startup stays fast
    future = scheduler.run_async(fetcher.load)
    scheduler.then(future, lambda f: log("📚 Index ready." if f.result() else "⚠️ Index not loaded, /bible random unavailable."))

    log(f"✅ Ready! Try /bible John 3 16 or /bible random ({fetcher.version}). 📖")
    yield
    routes_bible.command = None
    scheduler.stop()
    fetcher.close()
    logic.stop_mqtt()
    log("👋 Bible chat service says goodbye.")

app = FastAPI(title="Bible Chat API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bible_router)

# --- Routes: Health / Root ----------------------------------------------------
@app.get("/_health", response_class=PlainTextResponse)
def health():
    return "OK"

@app.get("/")
def ok():
    f = bible_fetcher.fetcher
    return {"ok": True, "version": f.version, "index_loaded": f.is_loaded}
