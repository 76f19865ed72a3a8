# scheduler.py
# Two kinds of work: blocking jobs on a thread pool, and main-loop tasks that run one at a time
# on a single dedicated thread. All chat output goes through the main loop.

import queue
import threading
import traceback
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from logic import SCHEDULER_WORKERS


def _default_log(*args):
    print("[scheduler]", *args, flush=True)


class Scheduler:
    def __init__(self, workers: int = SCHEDULER_WORKERS, log_fn: Callable[..., None] | None = None,
                 join_timeout: float = 1.0):
        self._log = log_fn or _default_log
        self._workers = max(1, workers)
        self._join_timeout = join_timeout
        self._pool: Optional[ThreadPoolExecutor] = None
        self._tasks: "queue.Queue[tuple[Callable, tuple]]" = queue.Queue()
        self._stop_evt = threading.Event()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    # ---- Lifecycle -------------------------------------------------------- #
    def start(self):
        """Starts the main-loop thread and the worker pool."""
        with self._lock:
            if self._running:
                return
            old = self._thread
            if old is not None and old.is_alive():
                # previous loop still finishing a task; it owns its own queue and stop event
                old.join(timeout=self._join_timeout)
                if old.is_alive():
                    raise RuntimeError("previous main-loop thread still running")
            self._running = True
            self._stop_evt = threading.Event()
            self._pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="bible-async")
            self._thread = threading.Thread(
                target=self._loop, args=(self._tasks, self._stop_evt), name="bible-main", daemon=True,
            )
            self._thread.start()
        self._log(f"✅ Scheduler started ({self._workers} workers).")

    def stop(self):
        """Stops both halves. Tasks still queued for the main loop are dropped."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._stop_evt.set()
            pool, self._pool = self._pool, None
            thread = self._thread
            stale, self._tasks = self._tasks, queue.Queue()
        if pool:
            pool.shutdown(wait=False, cancel_futures=True)
        dropped = 0
        while True:
            try:
                stale.get_nowait()
                dropped += 1
            except queue.Empty:
                break
        if thread:
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                self._log(f"⚠️ Main-loop thread did not stop within {self._join_timeout}s.")
        self._log(f"🛑 Scheduler stopped ({dropped} queued tasks dropped).")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        return self._tasks.qsize()

    def is_main_thread(self) -> bool:
        return self._thread is not None and threading.current_thread() is self._thread

    # ---- Scheduling ------------------------------------------------------- #
    def run_async(self, work: Callable, *args) -> Future:
        """Runs blocking work off the main loop."""
        with self._lock:
            pool = self._pool
        if pool is None:
            raise RuntimeError("scheduler not started")
        return pool.submit(work, *args)

    def run_task(self, work: Callable, *args) -> None:
        """Queues work for the main loop. Tasks run serially in the order queued."""
        with self._lock:
            tasks = self._tasks
        tasks.put((work, args))

    def then(self, future: Future, callback: Callable[[Future], None]) -> None:
        """Once the future is done, runs callback(future) on the main loop."""
        future.add_done_callback(lambda f: self.run_task(callback, f))

    # ---- Main loop -------------------------------------------------------- #
    def _run_one(self, work: Callable, args: tuple) -> None:
        try:
            work(*args)
        except Exception:
            self._log("⚠️ Main-loop task failed:")
            traceback.print_exc()

    def _loop(self, tasks: "queue.Queue[tuple[Callable, tuple]]", stop_evt: threading.Event):
        while not stop_evt.is_set():
            try:
                work, args = tasks.get(timeout=0.2)
            except queue.Empty:
                continue
            if stop_evt.is_set():
                break
            self._run_one(work, args)


# Global instance to be imported by main.py
scheduler = Scheduler()
