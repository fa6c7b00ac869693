"""
Clients for external services.
"""

from contact_sync.services.directory_client import (
    DirectoryAuthError,
    DirectoryClient,
    DirectoryError,
)

__all__ = ["DirectoryClient", "DirectoryError", "DirectoryAuthError"]
