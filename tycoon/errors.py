"""Exceptions shared across the simulation modules."""


class LedgerInvariantError(RuntimeError):
    """Raised when a mutation would leave a quantity outside ``[0, cap]``.

    This signals a programming error, so the event bus lets it escape
    instead of logging it like an ordinary handler failure.
    """
