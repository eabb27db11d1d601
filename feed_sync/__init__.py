"""feed_sync - RSS/Atom feed synchronization engine with an MCP server front end."""

__version__ = "0.1.0"
