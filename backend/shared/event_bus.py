import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)


class EventBus:
    """
    A simple, in-process event bus using Django's Signal dispatcher.
    This allows for decoupled communication between different apps.

    - register_event(event_name): Pre-defines an event.
    - publish(event_name, **kwargs): Sends an event.
    - subscribe(event_name, handler): Registers a function to handle an event.

    Events currently published:
        transaction.saved    old=<TransactionSnapshot|None>, new=<TransactionSnapshot>, created=<bool>
        transaction.deleted  old=<TransactionSnapshot>
        transaction.changed  old=<TransactionSnapshot|None>, new=<TransactionSnapshot|None>
    """
    def __init__(self):
        self._signals = {}

    def register_event(self, event_name: str):
        if event_name not in self._signals:
            self._signals[event_name] = Signal()
            logger.debug("Event '%s' registered.", event_name)

    def publish(self, event_name: str, **kwargs):
        """
        Publishes an event to all subscribed handlers.

        Handlers run synchronously in the publisher's thread and database
        transaction; exceptions raised by a handler propagate to the caller.
        """
        if event_name not in self._signals:
            self.register_event(event_name)
            logger.warning("Event '%s' was published without being pre-registered.", event_name)

        signal = self._signals[event_name]
        logger.debug("Publishing event '%s' with keys: %s", event_name, sorted(kwargs))
        results = signal.send(sender=self.__class__, **kwargs)
        if not results:
            logger.debug("Event '%s' was published, but no handlers received it.", event_name)
        return results

    def subscribe(self, event_name: str, handler):
        self.register_event(event_name)
        # dispatch_uid keeps repeated AppConfig.ready() calls from double-subscribing
        self._signals[event_name].connect(
            handler,
            weak=False,
            dispatch_uid=f"{event_name}:{handler.__module__}.{handler.__qualname__}",
        )
        logger.debug("Handler %s subscribed to event '%s'.", handler.__name__, event_name)


# Global instance of the event bus to be used throughout the application
event_bus = EventBus()
