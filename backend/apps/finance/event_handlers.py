import logging

from shared.event_bus import event_bus

from .services.balance_service import BalanceService

logger = logging.getLogger(__name__)


def handle_transaction_saved(sender, old=None, new=None, **kwargs):
    """Apply the balance delta of a created or updated transaction."""
    BalanceService.handle_write(old, new)


def handle_transaction_deleted(sender, old=None, **kwargs):
    BalanceService.handle_write(old, None)


def subscribe_to_events():
    event_bus.subscribe("transaction.saved", handle_transaction_saved)
    event_bus.subscribe("transaction.deleted", handle_transaction_deleted)
    logger.debug("Finance balance handlers subscribed")
