"""
Example usage of the Perplexity MCP Server

This starts the server over stdio, lists its tool and runs one search.
Requires PERPLEXITY_API_KEY in the environment.
"""

import asyncio
import os

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client


async def example_search(query: str):
    """Example: Asking a question and printing the answer with sources."""
    print("=== Example: Perplexity Search ===\n")

    server_params = StdioServerParameters(
        command="python",
        args=["-m", "perplexity_mcp", "--transport", "stdio"],
        env={**os.environ},
    )

    async with stdio_client(server_params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()

            tools = await session.list_tools()
            print(f"Available tools: {[tool.name for tool in tools.tools]}\n")

            result = await session.call_tool(
                "perplexity_search",
                {"query": query, "search_recency_filter": "week"},
            )
            for item in result.content:
                if item.type == "text":
                    print(item.text)
            if result.isError:
                print("\n(the tool reported an error)")


async def main():
    if not os.environ.get("PERPLEXITY_API_KEY"):
        print("Set PERPLEXITY_API_KEY to run this example.")
        return
    await example_search("What changed in the latest Python release?")


if __name__ == "__main__":
    asyncio.run(main())
