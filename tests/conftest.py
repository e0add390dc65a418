import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import trio

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.session import Session, open_session  # noqa: E402


def frame(packet_type: str, seq: Optional[int] = None, **data: Any) -> Dict[str, Any]:
    """Build a raw dispatch frame the way the gateway sends it."""
    return {"op": 0, "t": packet_type, "s": seq, "d": data}


class RecordingDispatcher:
    """Stands in for the trio dispatcher; records submissions and runs them inline."""

    def __init__(self) -> None:
        self.calls: List[Any] = []
        self.errors: List[Any] = []

    def dispatch(self, scope_root, listeners, invocation) -> None:
        self.calls.append((scope_root, list(listeners), invocation))
        for listener in listeners:
            invocation(listener)

    def report_error(self, exc, subject, listener=None) -> None:
        self.errors.append((exc, subject, listener))


@pytest.fixture
def frame_factory():
    return frame


@pytest.fixture
def session() -> Session:
    """A session whose dispatcher runs listeners synchronously."""
    s = Session()
    s.dispatcher = RecordingDispatcher()
    return s


@pytest.fixture
def run_session():
    """Run ``body(session)`` inside a live session, then return the session."""

    def _run(body, config: Optional[Dict[str, Any]] = None, clock: Any = None) -> Session:
        result: Dict[str, Session] = {}

        async def main() -> None:
            async with open_session(config) as s:
                result["session"] = s
                await body(s)

        trio.run(main, clock=clock)
        return result["session"]

    return _run
