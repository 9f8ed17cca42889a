"""Application layer - Use cases and DTOs."""

from ledgerflow.application.documents import DocumentService
from ledgerflow.application.ledger_setup import LedgerSetupService
from ledgerflow.application.lifecycle import LifecycleService
from ledgerflow.application.reporting import ReportingService
