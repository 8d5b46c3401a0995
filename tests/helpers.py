"""Shared helpers for faking the streaming upstream."""

import json

import httpx


class RecordingStream(httpx.AsyncByteStream):
    """Response body that yields fixed chunks and records whether it was closed."""

    def __init__(self, chunks, error=None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False
        self.yielded = 0

    async def __aiter__(self):
        for chunk in self.chunks:
            self.yielded += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self):
        self.closed = True


def sse(payload):
    if isinstance(payload, str):
        return f"data: {payload}\n\n".encode("utf-8")
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


def delta_payload(content, **extra):
    payload = {"id": "cmpl-test", "model": "sonar-pro", "choices": [{"index": 0, "delta": {"content": content}}]}
    payload.update(extra)
    return payload
