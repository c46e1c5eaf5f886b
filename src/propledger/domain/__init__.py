"""Domain layer for propledger application."""

from propledger.domain.resolver import EntityResolver
from propledger.domain.classifier import CategoryClassifier
from propledger.domain.pm_fee import FeeAccrualService, PMConfigService
from propledger.domain.transfer import OwnershipTransferService
from propledger.domain.reports import LedgerReportService
from propledger.domain.summary import BalanceService

__all__ = [
    "EntityResolver",
    "CategoryClassifier",
    "FeeAccrualService",
    "PMConfigService",
    "OwnershipTransferService",
    "LedgerReportService",
    "BalanceService",
]
