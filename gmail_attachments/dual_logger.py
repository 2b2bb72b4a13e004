"""Dual logging utilities for the MCP tool server."""

import logging

from mcp.server.fastmcp import Context

logger = logging.getLogger('gmail_attachments.mcp')


class DualLogger:
    """Logs messages to both the process log and the MCP client context."""

    def __init__(self, ctx: Context | None):
        self.ctx = ctx

    async def info(self, msg: str):
        """Log info message to both the process log and MCP context."""
        logger.info(msg)
        if self.ctx is not None:
            await self.ctx.info(msg)

    async def debug(self, msg: str):
        """Log debug message to both the process log and MCP context."""
        logger.debug(msg)
        if self.ctx is not None:
            await self.ctx.debug(msg)

    async def warning(self, msg: str):
        """Log warning message to both the process log and MCP context."""
        logger.warning(msg)
        if self.ctx is not None:
            await self.ctx.warning(msg)

    async def error(self, msg: str):
        """Log error message to both the process log and MCP context."""
        logger.error(msg)
        if self.ctx is not None:
            await self.ctx.error(msg)
