"""
Streaming client for Perplexity's chat completions endpoint.
"""

from typing import Any, Dict, Optional

import httpx

from perplexity_mcp.accumulator import ChatStreamAccumulator, StreamResult
from perplexity_mcp.config import ServerSettings
from perplexity_mcp.errors import StreamTransportError, UpstreamHTTPError
from perplexity_mcp.logging_config import get_logger
from perplexity_mcp.sse import iter_sse_events

logger = get_logger(__name__)


class PerplexityClient:
    """Sends one user query per call and reassembles the streamed answer."""

    def __init__(self, settings: ServerSettings, http_client: Optional[httpx.AsyncClient] = None):
        """
        Initialize the client.

        Args:
            settings: Server settings (endpoint, model, request defaults)
            http_client: Optional preconfigured httpx client; one is created otherwise
        """
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.timeout)

    def build_payload(self, query: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Assemble the request body for a single user query."""
        payload: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": query}],
            "stream": True,
        }
        payload.update(self.settings.request_defaults)
        if options:
            payload.update({k: v for k, v in options.items() if v is not None})
        # Streaming is what the decoder expects, whatever the defaults say
        payload["stream"] = True
        return payload

    @staticmethod
    def build_headers(api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def stream_completion(
        self, query: str, api_key: str, options: Optional[Dict[str, Any]] = None
    ) -> StreamResult:
        """
        Run one streaming completion and return the accumulated result.

        The response stream is closed on every exit path: normal end, early
        ``[DONE]`` and errors.

        Raises:
            UpstreamHTTPError: Non-2xx response
            StreamTransportError: The connection failed while reading
        """
        payload = self.build_payload(query, options)
        accumulator = ChatStreamAccumulator()

        logger.debug(f"POST {self.settings.api_url} model={payload['model']}")
        try:
            async with self._client.stream(
                "POST",
                self.settings.api_url,
                headers=self.build_headers(api_key),
                json=payload,
            ) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamHTTPError(response.status_code, body)

                events = iter_sse_events(response.aiter_bytes())
                try:
                    async for event in events:
                        accumulator.process(event)
                        if accumulator.done:
                            break
                finally:
                    await events.aclose()
        except httpx.TransportError as e:
            raise StreamTransportError(f"Error communicating with Perplexity API: {e}") from e

        if accumulator.skipped_events:
            logger.warning(f"Skipped {accumulator.skipped_events} malformed stream event(s)")
        result = accumulator.result()
        logger.debug(
            f"Stream finished: id={result.id} finish_reason={result.finish_reason} "
            f"chars={len(result.text)} citations={len(result.citations)} images={len(result.images)}"
        )
        return result

    async def aclose(self):
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
