"""Suppression of self-authored message echoes."""

from __future__ import annotations


class DedupFilter:
    """Tracks message texts this process wrote and has not yet seen echoed.

    Entries are keyed by the raw text, so two in-flight sends with identical
    text share one entry and the first echo of either consumes it.
    """

    def __init__(self) -> None:
        self._pending: set[str] = set()

    def __contains__(self, text: object) -> bool:
        return text in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def mark_pending(self, text: str) -> None:
        self._pending.add(text)

    def try_consume(self, text: str) -> bool:
        """Remove ``text`` and report whether it was pending."""
        if text in self._pending:
            self._pending.discard(text)
            return True
        return False

    def cancel_pending(self, text: str) -> None:
        self._pending.discard(text)
