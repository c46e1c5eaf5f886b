"""Domain model entities for propledger.

These are pure data classes representing business concepts, independent of
how the host application stores its state. Reports read them, and the only
way to change them is through an action dispatched on the state store.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class TransactionType(str, Enum):
    """Direction of a transaction; amounts are always stored positive."""

    INCOME = "Income"
    EXPENSE = "Expense"
    TRANSFER = "Transfer"
    LOAN = "Loan"


class LoanSubtype(str, Enum):
    """Direction of a loan transaction."""

    GIVE = "Give Loan"
    RECEIVE = "Receive Loan"
    REPAY = "Repay Loan"
    COLLECT = "Collect Loan"

    @property
    def is_inflow(self) -> bool:
        return self in (LoanSubtype.RECEIVE, LoanSubtype.COLLECT)


class ContactType(str, Enum):
    """Role tag of a contact record."""

    OWNER = "Owner"
    TENANT = "Tenant"
    STAFF = "Staff"
    BROKER = "Broker"
    DEALER = "Dealer"
    FRIEND_FAMILY = "Friend & Family"
    CLIENT = "Client"
    LEAD = "Lead"
    VENDOR = "Vendor"


class AccountType(str, Enum):
    """Chart-of-accounts node type."""

    BANK = "Bank"
    CASH = "Cash"
    ASSET = "Asset"
    LIABILITY = "Liability"
    EQUITY = "Equity"


class InvoiceType(str, Enum):
    """Kind of receivable."""

    RENTAL = "Rental"
    SECURITY_DEPOSIT = "Security Deposit"
    SERVICE_CHARGE = "Service Charge"
    INSTALLMENT = "Installment"


class AgreementStatus(str, Enum):
    """Rental agreement lifecycle state."""

    ACTIVE = "Active"
    TERMINATED = "Terminated"
    EXPIRED = "Expired"
    RENEWED = "Renewed"

    @property
    def is_historical(self) -> bool:
        return self is not AgreementStatus.ACTIVE


class PMFrequency(str, Enum):
    """Allocation cycle length for project-management fees."""

    MONTHLY = "Monthly"
    WEEKLY = "Weekly"
    YEARLY = "Yearly"


class SystemRole(str, Enum):
    """Stable tag for categories the reports treat specially.

    The value is the category name the host application seeds, which is
    what categories without an explicit role are matched against.
    """

    PM_COST = "Project Management Cost"
    BROKER_FEE = "Broker Fee"
    REBATE = "Rebate Amount"
    OWNER_PAYOUT = "Owner Payout"
    CUSTOMER_DISCOUNT = "Customer Discount"
    FLOOR_DISCOUNT = "Floor Discount"
    LUMP_SUM_DISCOUNT = "Lump Sum Discount"
    MISC_DISCOUNT = "Misc Discount"
    RENTAL_INCOME = "Rental Income"
    SECURITY_DEPOSIT = "Security Deposit"
    SECURITY_DEPOSIT_REFUND = "Security Deposit Refund"
    OWNER_SECURITY_PAYOUT = "Owner Security Payout"


class SortDirection(str, Enum):
    """Sort order for report rows."""

    ASC = "asc"
    DESC = "desc"


# Contacts
#
# One table in the host application serves several roles. Each role is its
# own class here, tagged by a fixed ``type``, so role-specific fields only
# exist on the variant they belong to.


@dataclass(frozen=True)
class Contact:
    """Base contact entity."""

    type: ClassVar[ContactType]

    id: str
    name: str
    contact_no: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None

    @property
    def can_own_property(self) -> bool:
        """Owners and clients are the only contacts a property can belong to."""
        return self.type in (ContactType.OWNER, ContactType.CLIENT)


@dataclass(frozen=True)
class Owner(Contact):
    type: ClassVar[ContactType] = ContactType.OWNER


@dataclass(frozen=True)
class Tenant(Contact):
    type: ClassVar[ContactType] = ContactType.TENANT


@dataclass(frozen=True)
class Vendor(Contact):
    type: ClassVar[ContactType] = ContactType.VENDOR

    company_name: Optional[str] = None


@dataclass(frozen=True)
class Broker(Contact):
    type: ClassVar[ContactType] = ContactType.BROKER

    commission_note: Optional[str] = None


@dataclass(frozen=True)
class Dealer(Contact):
    type: ClassVar[ContactType] = ContactType.DEALER


@dataclass(frozen=True)
class Client(Contact):
    type: ClassVar[ContactType] = ContactType.CLIENT

    company_name: Optional[str] = None


@dataclass(frozen=True)
class FriendFamily(Contact):
    type: ClassVar[ContactType] = ContactType.FRIEND_FAMILY


@dataclass(frozen=True)
class Staff(Contact):
    type: ClassVar[ContactType] = ContactType.STAFF


@dataclass(frozen=True)
class Lead(Contact):
    type: ClassVar[ContactType] = ContactType.LEAD


CONTACT_CLASSES: dict[ContactType, type[Contact]] = {
    cls.type: cls
    for cls in (Owner, Tenant, Vendor, Broker, Dealer, Client, FriendFamily, Staff, Lead)
}


@dataclass(frozen=True)
class Building:
    """Building domain entity."""

    id: str
    name: str


@dataclass(frozen=True)
class Property:
    """Rentable unit owned by an owner or client contact."""

    id: str
    name: str
    owner_id: str
    building_id: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: str
    name: str
    type: TransactionType = TransactionType.EXPENSE
    parent_id: Optional[str] = None
    role: Optional[SystemRole] = None
    is_permanent: bool = False


@dataclass(frozen=True)
class Account:
    """Chart-of-accounts node."""

    id: str
    name: str
    type: AccountType = AccountType.BANK
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity."""

    id: str
    date: Union[date, datetime]
    type: TransactionType
    amount: Decimal
    account_id: Optional[str] = None
    from_account_id: Optional[str] = None
    to_account_id: Optional[str] = None
    category_id: Optional[str] = None
    contact_id: Optional[str] = None
    vendor_id: Optional[str] = None
    project_id: Optional[str] = None
    property_id: Optional[str] = None
    building_id: Optional[str] = None
    bill_id: Optional[str] = None
    invoice_id: Optional[str] = None
    agreement_id: Optional[str] = None
    description: Optional[str] = None
    is_system: bool = False
    subtype: Optional[LoanSubtype] = None


@dataclass(frozen=True)
class Invoice:
    """Receivable raised against a contact."""

    id: str
    number: str
    issue_date: date
    amount: Decimal
    contact_id: str
    invoice_type: InvoiceType = InvoiceType.RENTAL
    paid_amount: Decimal = Decimal("0")
    project_id: Optional[str] = None
    property_id: Optional[str] = None
    building_id: Optional[str] = None
    category_id: Optional[str] = None
    agreement_id: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class BillExpenseItem:
    """One categorised line of a bill."""

    category_id: Optional[str]
    net_value: Decimal


@dataclass(frozen=True)
class Bill:
    """Payable owed to a vendor."""

    id: str
    number: str
    issue_date: date
    amount: Decimal
    vendor_id: Optional[str] = None
    paid_amount: Decimal = Decimal("0")
    project_id: Optional[str] = None
    property_id: Optional[str] = None
    building_id: Optional[str] = None
    category_id: Optional[str] = None
    description: Optional[str] = None
    expense_items: tuple[BillExpenseItem, ...] = ()


@dataclass(frozen=True)
class RentalAgreement:
    """Rental agreement between a tenant and a property's owner."""

    id: str
    agreement_number: str
    property_id: str
    tenant_id: str
    status: AgreementStatus
    start_date: date
    end_date: date
    monthly_rent: Decimal
    broker_id: Optional[str] = None
    broker_fee: Optional[Decimal] = None
    security_deposit: Optional[Decimal] = None
    owner_id: Optional[str] = None
    description: Optional[str] = None
    previous_agreement_id: Optional[str] = None


@dataclass(frozen=True)
class RecurringInvoiceTemplate:
    """Template the host application uses to raise rent invoices."""

    id: str
    contact_id: str
    amount: Decimal
    active: bool = True
    agreement_id: Optional[str] = None
    property_id: Optional[str] = None


@dataclass(frozen=True)
class AgreementSettings:
    """Sequential numbering for rental agreements."""

    prefix: str = "AGR-"
    next_number: int = 1
    padding: int = 4


@dataclass(frozen=True)
class PMConfig:
    """Project-management fee configuration of a project."""

    rate: Decimal = Decimal("0")
    frequency: PMFrequency = PMFrequency.MONTHLY
    excluded_category_ids: tuple[str, ...] = ()
    vendor_id: Optional[str] = None


@dataclass(frozen=True)
class Project:
    """Project domain entity."""

    id: str
    name: str
    pm_config: Optional[PMConfig] = None


# Derived results


@dataclass(frozen=True)
class LedgerEntry:
    """One dated debit-or-credit record fed into the ledger aggregator.

    ``priority`` orders entries sharing a date (lower first). ``extra``
    carries report-specific columns such as owner or building names.
    """

    date: Union[date, datetime]
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    particulars: str = ""
    party_id: Optional[str] = None
    party_name: str = ""
    priority: int = 0
    source_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerRow:
    """A ledger entry plus its running balance after ordering."""

    entry: LedgerEntry
    balance: Decimal

    @property
    def date(self) -> Union[date, datetime]:
        return self.entry.date

    @property
    def debit(self) -> Decimal:
        return self.entry.debit

    @property
    def credit(self) -> Decimal:
        return self.entry.credit

    @property
    def particulars(self) -> str:
        return self.entry.particulars

    @property
    def party_name(self) -> str:
        return self.entry.party_name

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a column by name, including report-specific extras."""
        if key == "balance":
            return self.balance
        if hasattr(self.entry, key) and key != "extra":
            return getattr(self.entry, key)
        return self.entry.extra.get(key, default)


@dataclass(frozen=True)
class LedgerTotals:
    """Column totals of a ledger."""

    debit: Decimal
    credit: Decimal

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class ProjectFinancials:
    """Fee accrual position of a project."""

    total_expense: Decimal
    excluded_cost: Decimal
    net_base: Decimal
    accrued: Decimal
    paid: Decimal
    balance: Decimal


@dataclass(frozen=True)
class PMAllocation:
    """An allocation bill parsed back into its cycle."""

    cycle_id: str
    amount: Decimal
    issue_date: date
    start_date: date
    end_date: date
    bill_id: str
    paid_amount: Decimal = Decimal("0")

    @property
    def unpaid(self) -> Decimal:
        return self.amount - self.paid_amount


@dataclass(frozen=True)
class PendingCycle:
    """A fee cycle that has no allocation yet."""

    cycle_id: str
    label: str
    start_date: date
    end_date: date
    fee_base: Decimal
    amount: Decimal


class ExpiryBucket(str, Enum):
    """How soon an active agreement runs out."""

    ONE_MONTH = "1 Month"
    TWO_MONTHS = "2 Months"
    THREE_MONTHS = "3 Months"


@dataclass(frozen=True)
class AgreementExpiryRow:
    """Row of the agreement expiry report."""

    agreement_id: str
    agreement_number: str
    property_name: str
    building_name: str
    building_id: Optional[str]
    tenant_name: str
    monthly_rent: Decimal
    end_date: date
    days_until_expiry: int
    bucket: ExpiryBucket


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a property ownership transfer."""

    property_id: str
    old_owner_id: str
    new_owner_id: str
    renewed: tuple[tuple[str, str], ...] = ()
    backfilled_agreement_ids: tuple[str, ...] = ()
    deactivated_template_ids: tuple[str, ...] = ()
    security_deposit_total: Decimal = Decimal("0")
    notices: tuple[str, ...] = ()
