"""
Perplexity MCP server: exposes Perplexity's streaming chat completions as an MCP tool.
"""

__version__ = "0.1.0"
