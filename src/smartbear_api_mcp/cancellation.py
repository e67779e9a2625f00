from typing import Optional

from .errors import OperationCancelled


class CancellationToken:
    """Lets a caller abandon a long pagination walk, rate-limit wait or poll.

    The token is checked before every network call and before every sleep.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._cancelled = True
        self._reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled(self._reason or "Operation cancelled by caller")


def check(cancel: Optional[CancellationToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
