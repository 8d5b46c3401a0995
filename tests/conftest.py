import httpx
import pytest

from perplexity_mcp.client import PerplexityClient
from perplexity_mcp.config import ServerSettings

from .helpers import RecordingStream


SETTINGS_ENV = (
    "PERPLEXITY_API_KEY",
    "PERPLEXITY_MODEL",
    "PERPLEXITY_API_URL",
    "PERPLEXITY_TOOL_ARGUMENT",
    "PERPLEXITY_REQUEST_DEFAULTS",
    "PERPLEXITY_TIMEOUT",
    "PERPLEXITY_MCP_HOST",
    "PORT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep the developer's environment and .env file out of settings."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings():
    return ServerSettings(api_url="https://api.test/chat/completions", api_key="env-key")


@pytest.fixture
def make_client(settings):
    """Build a PerplexityClient whose upstream is a MockTransport handler."""
    def _make(handler):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return PerplexityClient(settings, http_client=http_client)

    return _make


@pytest.fixture
def streaming_upstream():
    """Upstream that records requests and answers with a RecordingStream."""

    class Upstream:
        def __init__(self):
            self.requests = []
            self.stream = None
            self.status_code = 200
            self.chunks = []
            self.error = None

        def __call__(self, request):
            self.requests.append(request)
            self.stream = RecordingStream(self.chunks, self.error)
            return httpx.Response(
                self.status_code,
                headers={"Content-Type": "text/event-stream"},
                stream=self.stream,
            )

    return Upstream()
