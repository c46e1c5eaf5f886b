"""Mapper functions between the host application's JSON state export and
domain entities.

The export uses the host application's camelCase keys. This layer isolates
that shape from the rest of the code, so report services only ever see
domain entities.
"""

import logging
from dataclasses import fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, TypeVar

from propledger.domain import entities as domain
from propledger.store.state import AppState
from propledger.utils.amount_parser import coerce_amount
from propledger.utils.date_parser import as_date, parse_timestamp

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _enum(enum_cls: type[E], value: Any, default: Optional[E] = None) -> Optional[E]:
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s value %r", enum_cls.__name__, value)
        return default


def _date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return as_date(value)
    return as_date(parse_timestamp(str(value)))


def _timestamp(value: Any):
    if isinstance(value, (date, datetime)):
        return value
    return parse_timestamp(str(value))


def _optional_amount(value: Any, context: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return coerce_amount(value, context)


def transaction_from_dict(data: dict) -> Optional[domain.Transaction]:
    """Convert an exported transaction to a domain Transaction.

    Returns None for transactions with an unknown type.
    """
    tx_type = _enum(domain.TransactionType, data.get("type"))
    if tx_type is None:
        return None
    tx_id = str(data["id"])
    subtype = None
    if tx_type is domain.TransactionType.LOAN:
        subtype = _enum(domain.LoanSubtype, data.get("subtype"))
    return domain.Transaction(
        id=tx_id,
        date=_timestamp(data["date"]),
        type=tx_type,
        amount=coerce_amount(data.get("amount"), f"(transaction {tx_id})"),
        account_id=data.get("accountId"),
        from_account_id=data.get("fromAccountId"),
        to_account_id=data.get("toAccountId"),
        category_id=data.get("categoryId"),
        contact_id=data.get("contactId"),
        vendor_id=data.get("vendorId"),
        project_id=data.get("projectId"),
        property_id=data.get("propertyId"),
        building_id=data.get("buildingId"),
        bill_id=data.get("billId"),
        invoice_id=data.get("invoiceId"),
        agreement_id=data.get("agreementId"),
        description=data.get("description"),
        is_system=bool(data.get("isSystem", False)),
        subtype=subtype,
    )


def invoice_from_dict(data: dict) -> domain.Invoice:
    """Convert an exported invoice to a domain Invoice."""
    inv_id = str(data["id"])
    return domain.Invoice(
        id=inv_id,
        number=str(data.get("invoiceNumber", "")),
        issue_date=_date(data["issueDate"]),
        amount=coerce_amount(data.get("amount"), f"(invoice {inv_id})"),
        contact_id=data.get("contactId"),
        invoice_type=_enum(
            domain.InvoiceType, data.get("invoiceType"), domain.InvoiceType.RENTAL
        ),
        paid_amount=coerce_amount(data.get("paidAmount"), f"(invoice {inv_id})"),
        project_id=data.get("projectId"),
        property_id=data.get("propertyId"),
        building_id=data.get("buildingId"),
        category_id=data.get("categoryId"),
        agreement_id=data.get("agreementId"),
        description=data.get("description"),
    )


def bill_from_dict(data: dict) -> domain.Bill:
    """Convert an exported bill to a domain Bill."""
    bill_id = str(data["id"])
    items = tuple(
        domain.BillExpenseItem(
            category_id=item.get("categoryId"),
            net_value=coerce_amount(item.get("netValue"), f"(bill {bill_id} item)"),
        )
        for item in data.get("expenseCategoryItems") or ()
    )
    return domain.Bill(
        id=bill_id,
        number=str(data.get("billNumber", "")),
        issue_date=_date(data["issueDate"]),
        amount=coerce_amount(data.get("amount"), f"(bill {bill_id})"),
        vendor_id=data.get("vendorId") or data.get("contactId"),
        paid_amount=coerce_amount(data.get("paidAmount"), f"(bill {bill_id})"),
        project_id=data.get("projectId"),
        property_id=data.get("propertyId"),
        building_id=data.get("buildingId"),
        category_id=data.get("categoryId"),
        description=data.get("description"),
        expense_items=items,
    )


def agreement_from_dict(data: dict) -> domain.RentalAgreement:
    """Convert an exported rental agreement to a domain RentalAgreement."""
    agr_id = str(data["id"])
    context = f"(agreement {agr_id})"
    return domain.RentalAgreement(
        id=agr_id,
        agreement_number=str(data.get("agreementNumber", "")),
        property_id=data.get("propertyId"),
        tenant_id=data.get("contactId") or data.get("tenantId"),
        status=_enum(
            domain.AgreementStatus, data.get("status"), domain.AgreementStatus.ACTIVE
        ),
        start_date=_date(data["startDate"]),
        end_date=_date(data["endDate"]),
        monthly_rent=coerce_amount(data.get("monthlyRent"), context),
        broker_id=data.get("brokerId") or None,
        broker_fee=_optional_amount(data.get("brokerFee"), context),
        security_deposit=_optional_amount(data.get("securityDeposit"), context),
        owner_id=data.get("ownerId") or None,
        description=data.get("description"),
        previous_agreement_id=data.get("previousAgreementId"),
    )


def template_from_dict(data: dict) -> domain.RecurringInvoiceTemplate:
    """Convert an exported recurring invoice template."""
    return domain.RecurringInvoiceTemplate(
        id=str(data["id"]),
        contact_id=data.get("contactId"),
        amount=coerce_amount(data.get("amount"), f"(template {data['id']})"),
        active=bool(data.get("active", True)),
        agreement_id=data.get("agreementId"),
        property_id=data.get("propertyId"),
    )


def project_from_dict(data: dict) -> domain.Project:
    """Convert an exported project, including its PM fee configuration."""
    pm_config = None
    raw_config = data.get("pmConfig")
    if raw_config:
        pm_config = domain.PMConfig(
            rate=coerce_amount(raw_config.get("rate"), f"(project {data['id']} rate)"),
            frequency=_enum(
                domain.PMFrequency, raw_config.get("frequency"), domain.PMFrequency.MONTHLY
            ),
            excluded_category_ids=tuple(raw_config.get("excludedCategoryIds") or ()),
            vendor_id=raw_config.get("vendorId"),
        )
    return domain.Project(id=str(data["id"]), name=data.get("name", ""), pm_config=pm_config)


def category_from_dict(data: dict) -> domain.Category:
    """Convert an exported category."""
    return domain.Category(
        id=str(data["id"]),
        name=data.get("name", ""),
        type=_enum(domain.TransactionType, data.get("type"), domain.TransactionType.EXPENSE),
        parent_id=data.get("parentCategoryId"),
        role=_enum(domain.SystemRole, data.get("role")),
        is_permanent=bool(data.get("isPermanent", False)),
    )


def account_from_dict(data: dict) -> domain.Account:
    """Convert an exported account."""
    return domain.Account(
        id=str(data["id"]),
        name=data.get("name", ""),
        type=_enum(domain.AccountType, data.get("type"), domain.AccountType.BANK),
        parent_id=data.get("parentAccountId"),
    )


def contact_from_dict(data: dict) -> Optional[domain.Contact]:
    """Convert an exported contact to its role variant.

    Returns None for contacts with an unknown type.
    """
    contact_type = _enum(domain.ContactType, data.get("type"))
    if contact_type is None:
        return None
    cls = domain.CONTACT_CLASSES[contact_type]
    kwargs = {
        "id": str(data["id"]),
        "name": data.get("name", ""),
        "contact_no": data.get("contactNo"),
        "address": data.get("address"),
        "description": data.get("description"),
    }
    field_names = {f.name for f in fields(cls)}
    if "company_name" in field_names:
        kwargs["company_name"] = data.get("companyName")
    if "commission_note" in field_names:
        kwargs["commission_note"] = data.get("commissionNote")
    return cls(**kwargs)


def property_from_dict(data: dict) -> domain.Property:
    """Convert an exported property."""
    return domain.Property(
        id=str(data["id"]),
        name=data.get("name", ""),
        owner_id=data.get("ownerId"),
        building_id=data.get("buildingId"),
        description=data.get("description"),
    )


def building_from_dict(data: dict) -> domain.Building:
    """Convert an exported building."""
    return domain.Building(id=str(data["id"]), name=data.get("name", ""))


def settings_from_dict(data: Optional[dict]) -> domain.AgreementSettings:
    """Convert exported agreement numbering settings."""
    if not data:
        return domain.AgreementSettings()
    return domain.AgreementSettings(
        prefix=data.get("prefix", "AGR-"),
        next_number=int(data.get("nextNumber", 1)),
        padding=int(data.get("padding", 4)),
    )


def _collect(rows, mapper) -> tuple:
    mapped = (mapper(row) for row in rows or ())
    return tuple(item for item in mapped if item is not None)


def state_from_dict(data: dict) -> AppState:
    """Build an AppState from the host application's state export."""
    return AppState(
        transactions=_collect(data.get("transactions"), transaction_from_dict),
        invoices=_collect(data.get("invoices"), invoice_from_dict),
        bills=_collect(data.get("bills"), bill_from_dict),
        rental_agreements=_collect(data.get("rentalAgreements"), agreement_from_dict),
        recurring_templates=_collect(data.get("recurringInvoiceTemplates"), template_from_dict),
        projects=_collect(data.get("projects"), project_from_dict),
        categories=_collect(data.get("categories"), category_from_dict),
        accounts=_collect(data.get("accounts"), account_from_dict),
        contacts=_collect(data.get("contacts"), contact_from_dict),
        properties=_collect(data.get("properties"), property_from_dict),
        buildings=_collect(data.get("buildings"), building_from_dict),
        agreement_settings=settings_from_dict(data.get("agreementSettings")),
    )


# Export side


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_json_value(v) for v in value]
    return value


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# Field names whose exported key differs from the camelCase of the field name
RENAMED_KEYS: dict[type, dict[str, str]] = {
    domain.Invoice: {"number": "invoiceNumber"},
    domain.Bill: {"number": "billNumber", "expense_items": "expenseCategoryItems"},
    domain.RentalAgreement: {"tenant_id": "contactId"},
    domain.Category: {"parent_id": "parentCategoryId"},
    domain.Account: {"parent_id": "parentAccountId"},
}


def entity_to_dict(entity: Any) -> dict:
    """Convert a domain entity back to the export shape, dropping empty fields."""
    renames = RENAMED_KEYS.get(type(entity), {})
    data: dict[str, Any] = {}
    if isinstance(entity, domain.Contact):
        data["type"] = entity.type.value
    for f in fields(entity):
        value = getattr(entity, f.name)
        if value is None:
            continue
        key = renames.get(f.name, _camel(f.name))
        if f.name == "expense_items":
            value = [
                {"categoryId": item.category_id, "netValue": _json_value(item.net_value)}
                for item in value
            ]
        elif f.name == "pm_config":
            value = entity_to_dict(value)
        else:
            value = _json_value(value)
        data[key] = value
    return data


def state_to_dict(state: AppState) -> dict:
    """Convert an AppState back into the host application's export shape."""
    return {
        "transactions": [entity_to_dict(t) for t in state.transactions],
        "invoices": [entity_to_dict(i) for i in state.invoices],
        "bills": [entity_to_dict(b) for b in state.bills],
        "rentalAgreements": [entity_to_dict(a) for a in state.rental_agreements],
        "recurringInvoiceTemplates": [entity_to_dict(t) for t in state.recurring_templates],
        "projects": [entity_to_dict(p) for p in state.projects],
        "categories": [entity_to_dict(c) for c in state.categories],
        "accounts": [entity_to_dict(a) for a in state.accounts],
        "contacts": [entity_to_dict(c) for c in state.contacts],
        "properties": [entity_to_dict(p) for p in state.properties],
        "buildings": [entity_to_dict(b) for b in state.buildings],
        "agreementSettings": entity_to_dict(state.agreement_settings),
    }
