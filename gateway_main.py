"""Replay a captured gateway stream through a session.

Reads a JSON-lines file of raw gateway frames (one frame per line), runs it
through the packet pipeline, and logs every dispatched event. Useful for
reproducing listener behaviour from a recorded session.

Usage:
    python gateway_main.py capture.jsonl
"""
import json
import logging
import os
import sys
from typing import Any, AsyncIterator, Dict

import trio

from config import ConfigManager
from core.events import EventKind
from core.session import open_session

logger = logging.getLogger(__name__)


async def read_frames(path: str) -> AsyncIterator[Dict[str, Any]]:
    """Yield frames from a JSON-lines capture, skipping lines that are not JSON."""
    async with await trio.open_file(path, "r", encoding="utf-8") as f:
        line_no = 0
        async for line in f:
            line_no += 1
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping invalid JSON on line %s of %s", line_no, path)


def log_event(event: Any) -> None:
    logger.info("Event %s: %s", event.kind.value, event)


def log_failure(exc: BaseException, subject: Any, listener: Any) -> None:
    logger.error("Pipeline failure on %s: %s", type(subject).__name__, exc)


async def main(capture_path: str) -> None:
    """Load config, open a session and replay ``capture_path`` through it."""
    config_path = os.environ.get("GATEWAY_CORE_CONFIG", "config.yaml")
    config_mgr = ConfigManager(config_path)
    config = config_mgr.load()

    logging.basicConfig(
        level=config["logging"].get("level", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Replaying %s", capture_path)

    async with open_session(config) as session:
        session.add_error_observer(log_failure)
        for kind in EventKind:
            session.add_listener(kind, log_event)

        frames = await session.consume(read_frames(capture_path))
        logger.info("Replayed %s frame(s)", frames)


if __name__ == "__main__":
    replay_path = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("GATEWAY_CORE_REPLAY")
    if not replay_path:
        sys.exit("usage: gateway_main.py CAPTURE.jsonl (or set GATEWAY_CORE_REPLAY)")
    trio.run(main, replay_path)
