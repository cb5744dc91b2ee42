"""Unit tests for per-project cancellation fan-out."""

from __future__ import annotations

from polaris.models import MessageRole, MessageStatus
from polaris.services.cancellation import CancellationCoordinator
from polaris.services.ledger import ConversationLedger
from tests.helpers import RecordingSignalSink


def _processing(ledger: ConversationLedger, conversation_id: int, count: int) -> list[int]:
    return [ledger.append_message(conversation_id, MessageRole.ASSISTANT, "").id for _ in range(count)]


def test_cancels_every_processing_message(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    ids = _processing(ledger, conversation.id, 3)
    sink = RecordingSignalSink()

    cancelled = CancellationCoordinator(ledger, sink).cancel_all_processing(project.id)

    assert cancelled == set(ids)
    assert sink.cancelled == ids
    assert all(ledger.get_message(message_id).status == MessageStatus.CANCELLED for message_id in ids)


def test_nothing_processing_means_no_signals(ledger: ConversationLedger, project, events) -> None:
    conversation = ledger.create_conversation(project.id)
    done = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")
    ledger.set_message_content(done.id, "answer")
    events.events.clear()
    sink = RecordingSignalSink()

    assert CancellationCoordinator(ledger, sink).cancel_all_processing(project.id) == set()
    assert sink.cancelled == []
    assert events.events == []
    assert ledger.get_message(done.id).status == MessageStatus.COMPLETED


def test_failed_signal_still_marks_message_cancelled(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    first, second = _processing(ledger, conversation.id, 2)
    sink = RecordingSignalSink(fail_for=[first])

    cancelled = CancellationCoordinator(ledger, sink).cancel_all_processing(project.id)

    assert cancelled == {first, second}
