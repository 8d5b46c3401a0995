"""
Perplexity MCP Server implementation.
"""

import contextlib
import re
import socket
from typing import Any, Dict, List, Optional, Tuple

import uvicorn
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.types import CallToolResult, TextContent, Tool
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from perplexity_mcp import __version__
from perplexity_mcp.client import PerplexityClient
from perplexity_mcp.config import ServerSettings
from perplexity_mcp.errors import (
    ConfigurationError,
    InvalidArgumentsError,
    PerplexityMCPError,
    UnknownToolError,
)
from perplexity_mcp.formatting import format_response
from perplexity_mcp.logging_config import get_logger, normalize_log_level

logger = get_logger(__name__)

TOOL_NAME = "perplexity_search"

SEARCH_MODES = ["web", "academic", "sec"]
RECENCY_FILTERS = ["hour", "day", "week", "month", "year"]

_BEARER = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    match = _BEARER.match(authorization.strip())
    if not match:
        return None
    return match.group(1).strip() or None


def port_in_use(host: str, port: int) -> bool:
    """Check whether something already listens on host:port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1.0)
        return sock.connect_ex((host, port)) == 0


class _MCPEndpoint:
    """ASGI endpoint handing /mcp requests to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope, receive, send):
        await self.session_manager.handle_request(scope, receive, send)


class PerplexityMCPServer:
    """MCP server exposing Perplexity search as a single tool."""

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        client: Optional[PerplexityClient] = None,
        name: str = "perplexity-mcp-server",
    ):
        """
        Initialize the server.

        Args:
            settings: Server settings; defaults are used when omitted
            client: Perplexity client; one is built from settings when omitted
            name: MCP server name reported during initialization
        """
        self.settings = settings or ServerSettings()
        self.client = client or PerplexityClient(self.settings)
        self.name = name
        self.server = Server(name)

        # Register handlers
        self._register_handlers()

    def tool_definition(self) -> Tool:
        """Describe the search tool and its input schema."""
        argument = self.settings.tool_argument
        return Tool(
            name=TOOL_NAME,
            description=(
                "Search and get answers using Perplexity's AI with real-time web data and citations"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    argument: {
                        "type": "string",
                        "minLength": 1,
                        "description": "The search query or question to send to Perplexity",
                    },
                    "search_mode": {
                        "type": "string",
                        "enum": SEARCH_MODES,
                        "description": "Search index to use: general web, academic papers or SEC filings",
                    },
                    "search_recency_filter": {
                        "type": "string",
                        "enum": RECENCY_FILTERS,
                        "description": "Only use sources published within this window",
                    },
                    "search_domain_filter": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Restrict (or with a '-' prefix, exclude) source domains",
                    },
                },
                "required": [argument],
            },
        )

    def _register_handlers(self):
        """Register MCP server handlers."""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            logger.debug("list_tools called")
            return [self.tool_definition()]

        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict) -> CallToolResult:
            logger.debug(f"call_tool called: {name}")
            return await self.handle_call_tool(name, arguments, api_key=self._request_api_key())

    def _request_api_key(self) -> Optional[str]:
        """Bearer token of the HTTP request carrying the current tool call, if any."""
        try:
            ctx = self.server.request_context
        except LookupError:
            return None
        request = getattr(ctx, "request", None)
        headers = getattr(request, "headers", None)
        if headers is None:
            return None
        return extract_bearer_token(headers.get("authorization"))

    def _parse_arguments(self, arguments: Optional[Dict[str, Any]]) -> Tuple[str, Dict[str, Any]]:
        if not isinstance(arguments, dict):
            raise InvalidArgumentsError(
                f"Invalid arguments: expected an object, got {type(arguments).__name__}"
            )

        argument = self.settings.tool_argument
        query = arguments.get(argument)
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgumentsError(
                f"Invalid arguments: '{argument}' must be a non-empty string"
            )

        options: Dict[str, Any] = {}
        search_mode = arguments.get("search_mode")
        if search_mode is not None:
            if search_mode not in SEARCH_MODES:
                raise InvalidArgumentsError(
                    f"Invalid arguments: search_mode must be one of {', '.join(SEARCH_MODES)}"
                )
            options["search_mode"] = search_mode

        recency = arguments.get("search_recency_filter")
        if recency is not None:
            if recency not in RECENCY_FILTERS:
                raise InvalidArgumentsError(
                    f"Invalid arguments: search_recency_filter must be one of {', '.join(RECENCY_FILTERS)}"
                )
            options["search_recency_filter"] = recency

        domains = arguments.get("search_domain_filter")
        if domains is not None:
            if not isinstance(domains, list) or not all(isinstance(d, str) for d in domains):
                raise InvalidArgumentsError(
                    "Invalid arguments: search_domain_filter must be a list of strings"
                )
            options["search_domain_filter"] = domains

        return query, options

    async def handle_call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]], api_key: Optional[str] = None
    ) -> CallToolResult:
        """
        Run a tool call and render the outcome as a CallToolResult.

        Args:
            name: Requested tool name
            arguments: Tool arguments
            api_key: Key taken from the request's Authorization header; the
                configured key is used when this is None

        Returns:
            Text result, with isError set when anything failed
        """
        try:
            if name != TOOL_NAME:
                raise UnknownToolError(name)

            query, options = self._parse_arguments(arguments)

            key = api_key or self.settings.api_key
            if not key:
                raise ConfigurationError(
                    "PERPLEXITY_API_KEY is required. Provide it via Authorization header "
                    "(Bearer token) or PERPLEXITY_API_KEY environment variable."
                )

            result = await self.client.stream_completion(query, key, options)
        except PerplexityMCPError as e:
            logger.error(f"Error calling {name}: {e}", exc_info=True)
            return self._error_result(str(e))
        except Exception as e:
            logger.error(f"Unexpected error calling {name}: {e}", exc_info=True)
            return self._error_result(str(e) or "Unknown error occurred")

        summary = result.as_chat_response(self.settings.model)
        logger.info(
            f"Answered {summary['id']} with {summary['model']}: "
            f"{summary['usage'].get('total_tokens', 0)} tokens, "
            f"{len(result.citations)} source(s), {len(result.images)} image(s)"
        )
        text = format_response(result.text, result.citations, result.images)
        return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)

    @staticmethod
    def _error_result(message: str) -> CallToolResult:
        return CallToolResult(
            content=[TextContent(type="text", text=f"Error: {message}")],
            isError=True,
        )

    def initialization_options(self) -> InitializationOptions:
        return InitializationOptions(
            server_name=self.name,
            server_version=__version__,
            capabilities=self.server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )

    def create_http_app(self) -> Starlette:
        """Build the Starlette app serving /mcp (streamable HTTP) and /health."""
        session_manager = StreamableHTTPSessionManager(app=self.server)

        async def health(request: Request) -> JSONResponse:
            return JSONResponse({"status": "ok", "service": "perplexity-mcp-server"})

        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette):
            async with session_manager.run():
                logger.info(
                    f"Perplexity MCP server listening on http://{self.settings.host}:{self.settings.port}/mcp"
                )
                try:
                    yield
                finally:
                    logger.info("Shutting down MCP server...")

        return Starlette(
            routes=[
                Route("/health", endpoint=health, methods=["GET"]),
                Route("/mcp", endpoint=_MCPEndpoint(session_manager)),
            ],
            lifespan=lifespan,
        )

    async def cleanup(self):
        """Release the HTTP client."""
        try:
            await self.client.aclose()
        except Exception as e:
            logger.warning(f"Error closing HTTP client: {e}")

    async def run_stdio(self):
        """Serve over standard input/output."""
        try:
            async with stdio_server() as (read_stream, write_stream):
                logger.info("Perplexity MCP Server (stdio) running")
                await self.server.run(read_stream, write_stream, self.initialization_options())
        finally:
            await self.cleanup()

    async def run_http(self):
        """Serve streamable HTTP on the configured host and port."""
        host, port = self.settings.host, self.settings.port
        if port_in_use(host, port):
            raise OSError(
                f"Port {port} is already in use. Stop the existing server, "
                f"or choose a different port (PORT={port + 1})."
            )

        config = uvicorn.Config(
            self.create_http_app(),
            host=host,
            port=port,
            log_level=normalize_log_level(self.settings.log_level).lower(),
        )
        try:
            await uvicorn.Server(config).serve()
        finally:
            await self.cleanup()
