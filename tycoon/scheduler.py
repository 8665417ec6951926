"""Background scheduler for running the game tick loop."""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Optional

from .game import Game, get_game


logger = logging.getLogger(__name__)

_loop_thread: Optional[threading.Thread] = None
_loop_lock = threading.Lock()


async def _run_tick_loop(game: Game) -> None:
    last = time.monotonic()
    while True:
        await asyncio.sleep(game.loop.interval_seconds)
        now = time.monotonic()
        elapsed_ms = (now - last) * 1000.0
        last = now
        try:
            game.tick(elapsed_ms, manual=False)
        except Exception:
            logger.exception("Background tick failed")


def ensure_tick_loop(game: Optional[Game] = None) -> None:
    """Start the asynchronous tick loop if it is not already running."""

    global _loop_thread
    target = game or get_game()
    with _loop_lock:
        if _loop_thread and _loop_thread.is_alive():
            return

        def runner() -> None:
            asyncio.run(_run_tick_loop(target))

        thread = threading.Thread(target=runner, name="game-tick-loop", daemon=True)
        thread.start()
        _loop_thread = thread
        logger.info("Tick loop started (interval %.0fms)", target.loop.interval_ms)


def is_running() -> bool:
    return bool(_loop_thread and _loop_thread.is_alive())
