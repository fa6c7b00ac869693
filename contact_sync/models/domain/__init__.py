"""
Domain models shared by the source, pipeline and directory client.
"""

from contact_sync.models.domain.contact_domain import Contact, PendingUpdate, bulk_payload

__all__ = ["Contact", "PendingUpdate", "bulk_payload"]
