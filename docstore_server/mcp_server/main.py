"""Main MCP server for Docstore Server."""

import asyncio
import logging

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from docstore_server.core.errors import DocstoreError
from docstore_server.core.logging import setup_logging
from docstore_server.core.serialization import redact_address, truncate_text
from docstore_server.core.session import ConnectionSession
from docstore_server.mcp_server.dispatch import Dispatcher
from docstore_server.models.config import ServerSettings
from docstore_server.operations import OperationRegistry, registry

logger = logging.getLogger(__name__)


def build_tools(operations: OperationRegistry) -> list[types.Tool]:
    """One MCP tool per registered operation, schema taken from its params model."""
    return [
        types.Tool(
            name=descriptor.name,
            description=descriptor.description,
            inputSchema=descriptor.input_schema,
        )
        for descriptor in operations
    ]


def build_server(dispatcher: Dispatcher, settings: ServerSettings) -> Server:
    """Create the MCP server and bind its handlers to ``dispatcher``."""
    server = Server(settings.server_name)
    tools = build_tools(dispatcher.operations)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """List available MCP tools."""
        return tools

    # Arguments are validated by the dispatcher so that schema violations are
    # reported like every other failure.
    @server.call_tool(validate_input=False)
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> types.CallToolResult:
        """Handle MCP tool calls."""
        reply = await dispatcher.dispatch(name, arguments)
        text = truncate_text(reply.render_text(), settings.max_reply_bytes)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=text)],
            isError=not reply.ok,
        )

    return server


async def run_server(
    settings: ServerSettings, session: ConnectionSession | None = None
) -> None:
    """Serve MCP over stdio until the client disconnects."""
    session = session or ConnectionSession.from_settings(settings)
    dispatcher = Dispatcher(session, registry, settings)
    server = build_server(dispatcher, settings)

    logger.info(
        f"Starting {settings.server_name} v{settings.server_version} "
        f"(default MongoDB {redact_address(settings.mongodb_url)}, "
        f"{len(registry)} tools)"
    )

    if settings.connect_on_start:
        try:
            await session.ensure_connected()
        except DocstoreError as e:
            logger.warning(
                f"MongoDB not reachable at startup ({e.message}) - "
                "tools will connect on first use"
            )

    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=settings.server_name,
                    server_version=settings.server_version,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
    finally:
        await session.close()
        logger.info("MCP server stopped")


async def main(settings: ServerSettings | None = None) -> None:
    """Main entry point for the MCP server."""
    settings = settings or ServerSettings.load()
    setup_logging(settings.log_level, settings.log_file)
    await run_server(settings)


def cli_main():
    """Synchronous entry point for script generation."""
    asyncio.run(main())


if __name__ == "__main__":
    cli_main()
