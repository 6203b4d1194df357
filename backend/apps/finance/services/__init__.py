"""
Financial services.
"""
from .balance_service import BalanceService
from .batch_service import BatchWorkflowError, InvalidBatchToken, PaymentBatchService
from .recurrence_service import RecurrenceService
from .report_service import ReportService
from .transaction_service import InvalidApprovalToken, TransactionError, TransactionService

__all__ = [
    'BalanceService',
    'BatchWorkflowError',
    'InvalidApprovalToken',
    'InvalidBatchToken',
    'PaymentBatchService',
    'RecurrenceService',
    'ReportService',
    'TransactionError',
    'TransactionService',
]
