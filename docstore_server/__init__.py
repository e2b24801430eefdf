"""
Docstore Server: MongoDB operations exposed as MCP tools.

A stdio Model Context Protocol server that owns a single shared connection to
a MongoDB deployment and routes every named operation (CRUD, aggregation,
index, database, collection and user administration) through one
validate/connect/execute/report contract.
"""

__version__ = "0.1.0"
