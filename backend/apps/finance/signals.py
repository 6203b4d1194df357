"""
Model signals feeding the balance aggregator.

Any write to a Transaction, whichever code path performs it, publishes
``transaction.saved`` / ``transaction.deleted`` on the event bus with the
state before and after the write.
"""
from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from shared.event_bus import event_bus

from .models import Transaction
from .services.snapshots import TransactionSnapshot

TRANSACTION_SAVED = "transaction.saved"
TRANSACTION_DELETED = "transaction.deleted"

_PREVIOUS_STATE = "_previous_state"


@receiver(pre_save, sender=Transaction)
def remember_previous_state(sender, instance, raw=False, **kwargs):
    if raw:
        return
    previous = None
    if instance.pk:
        stored = Transaction.objects.filter(pk=instance.pk).first()
        if stored is not None:
            previous = TransactionSnapshot.capture(stored, with_allocations=False)
    setattr(instance, _PREVIOUS_STATE, previous)


@receiver(post_save, sender=Transaction)
def publish_transaction_saved(sender, instance, created, raw=False, **kwargs):
    if raw:
        return
    old = getattr(instance, _PREVIOUS_STATE, None)
    new = TransactionSnapshot.capture(instance, with_allocations=False)
    setattr(instance, _PREVIOUS_STATE, new)
    event_bus.publish(TRANSACTION_SAVED, old=old, new=new, created=created)


@receiver(post_delete, sender=Transaction)
def publish_transaction_deleted(sender, instance, **kwargs):
    event_bus.publish(TRANSACTION_DELETED, old=TransactionSnapshot.capture(instance, with_allocations=False))
