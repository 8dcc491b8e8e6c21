"""Server-sent-event decoding for streaming chat replies.

Providers frame a streaming reply as lines of the form

    data: {"choices": [{"delta": {"content": "Hel"}}]}

ending with a sentinel line (`data: [DONE]` for OpenAI-style APIs). Network
reads do not respect line boundaries, so text is buffered until a full line
is available.
"""
from __future__ import annotations

import json
from typing import Any, Iterable, Iterator, List, Optional

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSELineBuffer:
    """Accumulates decoded text and hands back only complete lines."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> List[str]:
        self._pending += text
        lines = self._pending.split("\n")
        # last element is a partial line (or "" when text ended on a newline)
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> List[str]:
        rest, self._pending = self._pending.rstrip("\r"), ""
        return [rest] if rest else []


def _payload(line: str, prefix: str) -> Optional[str]:
    if not line.startswith(prefix):
        return None
    data = line[len(prefix):]
    if data.startswith(" "):
        data = data[1:]
    return data


def iter_sse_data(
    chunks: Iterable[str],
    prefix: str = DATA_PREFIX,
    sentinel: Optional[str] = DONE_SENTINEL,
) -> Iterator[str]:
    """Yield the payload of every `prefix` line until the sentinel or end of input."""
    buf = SSELineBuffer()
    for chunk in chunks:
        for line in buf.feed(chunk):
            data = _payload(line, prefix)
            if data is None:
                continue
            if sentinel is not None and data.strip() == sentinel:
                return
            yield data
    for line in buf.flush():
        data = _payload(line, prefix)
        if data is None:
            continue
        if sentinel is not None and data.strip() == sentinel:
            return
        yield data


def iter_sse_json(
    chunks: Iterable[str],
    prefix: str = DATA_PREFIX,
    sentinel: Optional[str] = DONE_SENTINEL,
) -> Iterator[Any]:
    """Like `iter_sse_data` but JSON-decoded; frames that do not parse are skipped."""
    for data in iter_sse_data(chunks, prefix=prefix, sentinel=sentinel):
        try:
            yield json.loads(data)
        except json.JSONDecodeError:
            continue
