"""Single-flight cancellation of agent runs per project."""

from __future__ import annotations

import logging
from typing import Protocol

from polaris.models import MessageStatus
from polaris.services.ledger import ConversationLedger

LOGGER = logging.getLogger(__name__)


class CancelSignalSink(Protocol):
    """Delivers a cancel signal to the run keyed by an assistant message id."""

    def cancel(self, run_id: int) -> bool:
        ...


class CancellationCoordinator:
    """Stops every in-flight run of a project before a new one starts."""

    def __init__(self, ledger: ConversationLedger, signals: CancelSignalSink) -> None:
        self._ledger = ledger
        self._signals = signals

    def cancel_all_processing(self, project_id: int) -> set[int]:
        """Signal and mark cancelled every processing message of the project.

        Returns the ids of messages this call moved to ``cancelled``. Runs that
        already finished between the lookup and the status write are left
        alone; the compare-and-swap in the ledger decides.
        """
        cancelled: set[int] = set()
        for message in self._ledger.processing_messages(project_id):
            try:
                self._signals.cancel(message.id)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Cancel signal failed | run=%s", message.id)
            if self._ledger.set_message_status(message.id, MessageStatus.CANCELLED):
                cancelled.add(message.id)

        if cancelled:
            LOGGER.info("Cancelled processing messages | project=%s | ids=%s", project_id, sorted(cancelled))
        return cancelled


__all__ = ["CancelSignalSink", "CancellationCoordinator"]
