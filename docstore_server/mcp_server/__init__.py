"""MCP stdio front end for Docstore Server.

Exposes every registered operation as an MCP tool and routes tool calls
through the dispatcher to the shared MongoDB session.
"""

