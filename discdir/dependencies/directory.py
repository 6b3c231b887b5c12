"""
Directory dependencies module.
Provides the shared query handler to the routers.
"""
from typing import Optional

from fastapi import HTTPException

from ..utils.directory_query import DirectoryQueryHandler
from ..utils.logging_config import setup_logging

# Configure logging
logger = setup_logging(__name__)

# Global instance, set by the application lifespan when the store is available
_query_handler: Optional[DirectoryQueryHandler] = None


def set_query_handler(handler: Optional[DirectoryQueryHandler]) -> None:
    global _query_handler
    _query_handler = handler
    if handler is None:
        logger.info("Directory query handler cleared")
    else:
        logger.info("Directory query handler registered")


def get_query_handler() -> DirectoryQueryHandler:
    """
    Get the shared DirectoryQueryHandler.

    Answers 503 while the service runs without a database.
    """
    if _query_handler is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return _query_handler
