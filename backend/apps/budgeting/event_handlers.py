import logging

from shared.event_bus import event_bus

from .services import UsageService

logger = logging.getLogger(__name__)


def handle_transaction_changed(sender, old=None, new=None, **kwargs):
    UsageService.apply_change(old, new)


def subscribe_to_events():
    event_bus.subscribe("transaction.changed", handle_transaction_changed)
