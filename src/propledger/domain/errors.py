"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as transferring a property to its own owner."""


def property_not_found(property_id: str) -> str:
    """Return message for missing property."""
    return f"Property {property_id} not found"


def project_not_found(project_id: str) -> str:
    """Return message for missing project."""
    return f"Project {project_id} not found"


def contact_not_found(contact_id: str) -> str:
    """Return message for missing contact."""
    return f"Contact {contact_id} not found"


def entity_not_found(kind: str, entity_id: str) -> str:
    """Return message for any other missing entity."""
    return f"{kind} {entity_id} not found"


def invalid_fee_rate(raw_rate: object) -> str:
    """Return message for a fee rate that is not a non-negative number."""
    return f"Invalid PM fee rate '{raw_rate}': rate must be a number of 0 or more"


def owner_not_eligible(contact_id: str, contact_type: str) -> str:
    """Return message when a contact cannot own property."""
    return (
        f"Contact {contact_id} is a {contact_type} contact; "
        "only owners and clients can own a property"
    )


def transfer_to_current_owner(property_id: str, owner_id: str) -> str:
    """Return message when the new owner is already the owner."""
    return f"Property {property_id} is already owned by {owner_id}"
