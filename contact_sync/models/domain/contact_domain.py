# contact_sync/models/domain/contact_domain.py
"""
Contact Domain Models
Records read from the input feed and the shapes sent to the directory's
bulk endpoints.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

CONTACT_TYPE = "identified"

# Directory attribute name -> Contact field
ATTRIBUTE_FIELDS = {
    "FIRST_NAME": "first_name",
    "LAST_NAME": "last_name",
    "RASHI": "rashi",
    "AGE": "age",
}


@dataclass(frozen=True, slots=True)
class Contact:
    """A person keyed by phone number, with optional free-form attributes."""

    phone: str
    first_name: str = ""
    last_name: str = ""
    rashi: str = ""
    age: str = ""

    def attributes(self) -> dict[str, str]:
        """Directory attributes, omitting empty values."""
        attrs = {}
        for attr_name, field_name in ATTRIBUTE_FIELDS.items():
            value = getattr(self, field_name)
            if value:
                attrs[attr_name] = value
        return attrs

    def to_create_entry(self) -> dict[str, Any]:
        """Entry for the bulk create payload."""
        entry: dict[str, Any] = {"mobile": self.phone, "identity": self.phone}
        attrs = self.attributes()
        if attrs:
            entry["attributes"] = attrs
        return entry


@dataclass(frozen=True, slots=True)
class PendingUpdate:
    """A contact that already exists remotely, queued for a bulk update."""

    remote_id: str
    contact: Contact

    def to_update_entry(self) -> dict[str, Any]:
        """Entry for the bulk update payload."""
        # The directory issues numeric ids; send them back as JSON numbers.
        contact_id: int | str = int(self.remote_id) if self.remote_id.isdigit() else self.remote_id
        entry: dict[str, Any] = {"contact_id": contact_id, "mobile": self.contact.phone}
        attrs = self.contact.attributes()
        if attrs:
            entry["attributes"] = attrs
        return entry


def bulk_payload(entries: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Wrap bulk entries in the envelope both bulk endpoints expect."""
    return {"data": {"contact_type": CONTACT_TYPE, "contacts": list(entries)}}
