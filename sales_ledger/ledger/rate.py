"""
Exchange Rate

The single user-controlled conversion factor (VES per USD) applied to every
record at read time. There is no rate history: changing the rate
re-values every record, old or new.

Input is coerced with coerce_rate(), so anything non-numeric or
non-positive becomes 0. The last rate is optionally persisted to a local
key-value store and restored on startup.
"""

from decimal import Decimal
from typing import Any, Callable, Optional

from sales_ledger.events import EventLogger
from sales_ledger.models.events import LedgerEventBuilder
from sales_ledger.models.money import ZERO, coerce_rate
from sales_ledger.services.preferences import KeyValueStore, PreferenceError


DEFAULT_RATE_KEY = "exchangeRate"

Listener = Callable[[], None]


class ExchangeRate:
    """Holds the current rate and tells listeners when it changes."""

    def __init__(
        self,
        initial: Any = ZERO,
        preferences: Optional[KeyValueStore] = None,
        key: str = DEFAULT_RATE_KEY,
        event_logger: Optional[EventLogger] = None,
    ):
        self._preferences = preferences
        self._key = key
        self._events = event_logger or EventLogger()
        self._listeners: list[Listener] = []

        stored = preferences.get(key) if preferences is not None else None
        self._value = coerce_rate(stored if stored is not None else initial)

    @property
    def value(self) -> Decimal:
        return self._value

    def set(self, raw: Any) -> Decimal:
        """
        Set the rate from user input and return the coerced value.

        Listeners are only called when the coerced value actually changes.
        """
        new_value = coerce_rate(raw)
        if new_value == self._value:
            return self._value

        old_value, self._value = self._value, new_value
        self._persist(new_value)
        self._events.log(LedgerEventBuilder.exchange_rate_changed(
            old_rate=str(old_value),
            new_rate=str(new_value),
        ))
        for listener in list(self._listeners):
            listener()
        return new_value

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unregister() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unregister

    def _persist(self, value: Decimal) -> None:
        if self._preferences is None:
            return
        try:
            self._preferences.set(self._key, str(value))
        except PreferenceError as e:
            # The rate still applies for this run
            self._events.log_error("preference_write_failed", str(e), {"key": self._key})
