"""
Exceptions raised while serving a Perplexity tool call.
"""


class PerplexityMCPError(Exception):
    """Base class for errors reported back to the MCP caller."""


class ConfigurationError(PerplexityMCPError):
    """Required configuration (usually the API key) is missing."""


class InvalidArgumentsError(PerplexityMCPError):
    """Tool arguments failed validation."""


class UnknownToolError(PerplexityMCPError):
    """The requested tool is not registered by this server."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class UpstreamHTTPError(PerplexityMCPError):
    """The chat completions endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Perplexity API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class StreamTransportError(PerplexityMCPError):
    """Reading the response stream failed part way through."""


class MalformedEventError(PerplexityMCPError):
    """An SSE record carried a payload that is not a JSON object."""
