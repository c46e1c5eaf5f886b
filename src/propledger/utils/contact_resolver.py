"""Utility for resolving contact names to IDs."""

from typing import Iterable, Optional

from propledger.domain.entities import Contact, ContactType


def resolve_contact(
    contacts: Iterable[Contact],
    contact: str,
    types: Optional[Iterable[ContactType]] = None,
) -> str:
    """Resolve a contact name or ID to a contact ID.

    IDs win over names. Names are matched case-insensitively.

    Args:
        contacts: Contacts to search
        contact: Contact ID or name
        types: Optional contact types the match must have

    Returns:
        Contact ID

    Raises:
        ValueError: If no contact, or more than one contact, matches
    """
    allowed = set(types) if types is not None else None
    candidates = [c for c in contacts if allowed is None or c.type in allowed]

    for candidate in candidates:
        if candidate.id == contact:
            return candidate.id

    wanted = contact.strip().lower()
    matches = [c for c in candidates if c.name.lower() == wanted]
    if len(matches) > 1:
        ids = ", ".join(c.id for c in matches)
        raise ValueError(f"Contact name '{contact}' is ambiguous (IDs: {ids})")
    if matches:
        return matches[0].id

    raise ValueError(f"Contact '{contact}' not found")
