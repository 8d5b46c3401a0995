"""
Incremental Server-Sent Events decoding.

Network reads split the stream at arbitrary byte offsets, so the decoder keeps
the unterminated tail of the stream between calls and only emits an event once
a blank line closes its record.
"""

import codecs
import re
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

DONE_SENTINEL = "[DONE]"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class SSEEvent:
    """One dispatched SSE record."""

    data: str
    event: Optional[str] = None

    @property
    def is_done(self) -> bool:
        return self.data == DONE_SENTINEL


class StreamDecoder:
    """
    Turns raw chunks of a ``text/event-stream`` body into SSEEvents.

    ``feed`` may return zero or more events per chunk; ``flush`` emits a
    trailing record that the stream ended without closing.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._data: Optional[List[str]] = None
        self._event: Optional[str] = None

    def feed(self, chunk: Union[bytes, str]) -> List[SSEEvent]:
        if isinstance(chunk, bytes):
            text = self._decoder.decode(chunk)
        else:
            text = chunk
        buffer = self._buffer + text

        # A trailing "\r" may be the first half of "\r\n"
        held = ""
        if buffer.endswith("\r"):
            buffer, held = buffer[:-1], "\r"

        lines = _LINE_BREAK.split(buffer)
        self._buffer = lines.pop() + held

        events = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> List[SSEEvent]:
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""

        events = []
        for line in _LINE_BREAK.split(tail):
            event = self._process_line(line)
            if event is not None:
                events.append(event)

        event = self._dispatch()
        if event is not None:
            events.append(event)
        return events

    def _process_line(self, line: str) -> Optional[SSEEvent]:
        line = line.strip()
        if not line:
            return self._dispatch()

        if line.startswith("data:"):
            value = line[len("data:"):].strip()
            if self._data is None:
                self._data = [value]
            else:
                self._data.append(value)
        elif line.startswith("event:"):
            self._event = line[len("event:"):].strip()
        # Comments (":") and other fields (id, retry) are not used upstream
        return None

    def _dispatch(self) -> Optional[SSEEvent]:
        data, event = self._data, self._event
        self._data = None
        self._event = None
        if data is None:
            return None
        return SSEEvent(data="\n".join(data), event=event)


async def iter_sse_events(
    chunks: AsyncIterable[bytes], decoder: Optional[StreamDecoder] = None
) -> AsyncIterator[SSEEvent]:
    """
    Lazily yield SSEEvents decoded from an async byte stream.

    The sequence is finite and not restartable; the caller stops pulling
    when it sees the ``[DONE]`` sentinel.
    """
    decoder = decoder or StreamDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
    for event in decoder.flush():
        yield event
