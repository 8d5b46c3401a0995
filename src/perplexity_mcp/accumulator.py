"""
Reassembles a streamed chat completion from its SSE events.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from perplexity_mcp.errors import MalformedEventError
from perplexity_mcp.logging_config import get_logger
from perplexity_mcp.sse import SSEEvent

logger = get_logger(__name__)


def _empty_usage() -> Dict[str, int]:
    return {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}


@dataclass
class StreamResult:
    """Everything one streamed completion produced."""

    text: str = ""
    citations: List[Any] = field(default_factory=list)
    images: List[Any] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: Dict[str, Any] = field(default_factory=_empty_usage)
    id: str = "unknown"
    model: Optional[str] = None
    created: Optional[int] = None

    def as_chat_response(self, default_model: str = "") -> Dict[str, Any]:
        """Synthesize a non-streaming chat completion body from the stream."""
        response = {
            "id": self.id,
            "model": self.model or default_model,
            "object": "chat.completion",
            "created": self.created if self.created is not None else 0,
            "choices": [
                {
                    "index": 0,
                    "finish_reason": self.finish_reason,
                    "message": {"role": "assistant", "content": self.text},
                }
            ],
            "usage": dict(self.usage),
        }
        if self.citations:
            response["citations"] = list(self.citations)
        if self.images:
            response["images"] = list(self.images)
        return response


class ChatStreamAccumulator:
    """
    Consumes SSEEvents for one tool call.

    Delta content is concatenated in arrival order. Citation and image arrays
    are replaced, not merged: the final chunk carries the full metadata.
    """

    def __init__(self):
        self.done = False
        self._parts: List[str] = []
        self._citations: Optional[List[Any]] = None
        self._images: Optional[List[Any]] = None
        self._finish_reason: Optional[str] = None
        self._usage: Optional[Dict[str, Any]] = None
        self._id: Optional[str] = None
        self._model: Optional[str] = None
        self._created: Optional[int] = None
        self.skipped_events = 0

    def process(self, event: SSEEvent) -> None:
        if self.done:
            return
        if event.is_done:
            self.done = True
            return

        try:
            payload = self._parse(event.data)
        except MalformedEventError as e:
            self.skipped_events += 1
            logger.debug(f"Skipping malformed stream event: {e}")
            return

        choice = self._first_choice(payload)
        if choice is not None:
            delta = choice.get("delta")
            if isinstance(delta, dict):
                content = delta.get("content")
                if isinstance(content, str) and content:
                    self._parts.append(content)
            if choice.get("finish_reason"):
                self._finish_reason = choice["finish_reason"]

        citations = payload.get("citations")
        if isinstance(citations, list):
            self._citations = citations
        elif isinstance(payload.get("search_results"), list):
            self._citations = payload["search_results"]

        images = payload.get("images")
        if isinstance(images, list):
            self._images = images

        if isinstance(payload.get("usage"), dict):
            self._usage = payload["usage"]
        if payload.get("id"):
            self._id = payload["id"]
        if payload.get("model"):
            self._model = payload["model"]
        if payload.get("created") is not None:
            self._created = payload["created"]

    def result(self) -> StreamResult:
        result = StreamResult(
            text="".join(self._parts),
            citations=list(self._citations or []),
            images=list(self._images or []),
        )
        if self._finish_reason:
            result.finish_reason = self._finish_reason
        if self._usage is not None:
            usage = _empty_usage()
            usage.update(self._usage)
            result.usage = usage
        if self._id:
            result.id = self._id
        result.model = self._model
        result.created = self._created
        return result

    @staticmethod
    def _parse(data: str) -> Dict[str, Any]:
        try:
            payload = json.loads(data)
        except ValueError as e:
            raise MalformedEventError(f"invalid JSON ({e}): {data[:80]!r}") from e
        if not isinstance(payload, dict):
            raise MalformedEventError(f"expected a JSON object, got {type(payload).__name__}")
        return payload

    @staticmethod
    def _first_choice(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        choices = payload.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            return choices[0]
        return None
