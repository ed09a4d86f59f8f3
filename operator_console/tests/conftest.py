import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pytest

# Ensure the repository root is importable for tests
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from operator_console.engine.config import Settings  # noqa: E402


def make_settings(**env: Any) -> Settings:
    """Settings isolated from the process environment and any .env file."""
    return Settings(_env_file=None, **env)


def frame(payload: Dict[str, Any], prefix: str = "data:") -> str:
    return f"{prefix} {json.dumps(payload)}\n\n"


def sse(*payloads: Dict[str, Any]) -> str:
    return "".join(frame(p) for p in payloads)


class FakeStream:
    """Chunk source that replays fixed chunks, optionally raising part-way through."""

    def __init__(self, chunks: Sequence[str], *, raise_after: Optional[int] = None, error: Optional[BaseException] = None, gate=None):
        self._chunks = list(chunks)
        self._raise_after = raise_after
        self._error = error
        self._gate = gate
        self.pulled = 0
        self.closed = False

    async def pull(self) -> Optional[str]:
        if self._gate is not None:
            await self._gate.wait()
        if self._raise_after is not None and self.pulled >= self._raise_after:
            raise self._error
        if self.closed or self.pulled >= len(self._chunks):
            return None
        chunk = self._chunks[self.pulled]
        self.pulled += 1
        return chunk

    async def aclose(self) -> None:
        self.closed = True


class FakeTransport:
    """Stands in for StreamTransport: hands out queued streams or rejections, one per turn."""

    def __init__(self, *responses: Any):
        self._responses: List[Any] = list(responses)
        self.requests = []
        self.streams: List[FakeStream] = []

    def queue(self, *responses: Any) -> None:
        self._responses.extend(responses)

    async def open_turn(self, request, *, request_id=None):
        self.requests.append(request)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, FakeStream):
            response = FakeStream(response if isinstance(response, (list, tuple)) else [response])
        self.streams.append(response)
        return response


def reply(*texts: str, session_id: Any = 42, thinking: bool = True) -> List[str]:
    """Chunks for a typical successful turn: thinking, content deltas, then done with the session id."""
    payloads: List[Dict[str, Any]] = []
    if thinking:
        payloads.append({"thinking": True})
    payloads.extend({"content": t} for t in texts)
    payloads.append({"done": True, "sessionId": session_id})
    return [frame(p) for p in payloads]


def split_every(text: str, size: int) -> Iterable[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


@pytest.fixture
def settings() -> Settings:
    return make_settings()
