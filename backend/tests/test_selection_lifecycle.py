"""
Unit tests for the selection state machine.

Uses a fake scheduler so the auto-dismiss of the paragraph-limit warning can
be fired (or checked for cancellation) without real timers.
"""

from unittest.mock import Mock

import pytest

from marginalia.models.annotation_types import Annotation, AnnotationCreate
from marginalia.services.anchoring.document_tree import (
    TextPoint,
    TextSpan,
    parse_document,
)
from marginalia.services.anchoring.errors import (
    AnnotationPersistenceError,
    InvalidTransitionError,
    UnanchoredSelectionError,
)
from marginalia.services.anchoring.paragraph_locator import find_document_container
from marginalia.services.anchoring.selection_lifecycle import (
    SelectionLifecycle,
    SelectionPhase,
    SelectionRect,
    timer_scheduler,
)
from marginalia.services.anchoring.selection_normalizer import (
    EXCEEDS_LIMIT_DISMISS_SECONDS,
)
from tests.conftest import paragraph_text_node


class FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    def __init__(self):
        self.scheduled = []

    def __call__(self, delay, callback):
        handle = FakeHandle()
        self.scheduled.append((delay, callback, handle))
        return handle

    def fire_last(self):
        _, callback, _ = self.scheduled[-1]
        callback()


def _stored(payload: AnnotationCreate, annotation_id: int = 1) -> Annotation:
    return Annotation(
        id=annotation_id,
        created_at="2026-01-01 00:00:00",
        updated_at="2026-01-01 00:00:00",
        **payload.model_dump(),
    )


@pytest.fixture
def store():
    store = Mock()
    store.create.side_effect = lambda payload: _stored(payload)
    return store


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def lifecycle(transcript_container, store, scheduler):
    return SelectionLifecycle(
        transcript_container, store, "doc-1", scheduler=scheduler
    )


def _mushroom_span(root, start=6, end=10):
    node = paragraph_text_node(root, 10)
    return TextSpan(TextPoint(node, start), TextPoint(node, end))


class TestCapture:
    def test_begin_then_release_selects(self, lifecycle, transcript_root):
        span = _mushroom_span(transcript_root)
        rect = SelectionRect(x=10, y=20, width=80, height=16)

        assert lifecycle.begin(span) is SelectionPhase.SELECTING
        assert lifecycle.release(span, rect) is SelectionPhase.SELECTED
        assert lifecycle.selection.text == "mushroom"
        assert lifecycle.rect == rect

    def test_confirm_persists_and_returns_to_idle(
        self, lifecycle, transcript_root, store
    ):
        lifecycle.begin(_mushroom_span(transcript_root))
        lifecycle.release(_mushroom_span(transcript_root))

        annotation = lifecycle.confirm(category_id=3)

        assert lifecycle.phase is SelectionPhase.IDLE
        assert not lifecycle.has_selection
        assert lifecycle.rect is None
        payload = store.create.call_args[0][0]
        assert payload.document_id == "doc-1"
        assert payload.category_id == 3
        assert payload.highlighted_text == "mushroom"
        assert payload.start_paragraph_id == payload.end_paragraph_id == 10
        assert annotation.selector.anchor_for(10).start_offset == 4
        assert (SelectionPhase.SELECTED, SelectionPhase.CONFIRMED) in lifecycle.history

    def test_confirm_clears_live_selection(self, transcript_container, store, transcript_root):
        cleared = Mock()
        lifecycle = SelectionLifecycle(
            transcript_container, store, "doc-1", on_clear_selection=cleared
        )
        lifecycle.release(_mushroom_span(transcript_root))
        lifecycle.confirm()
        cleared.assert_called_once()

    def test_release_without_begin_selects(self, lifecycle, transcript_root):
        assert lifecycle.release(_mushroom_span(transcript_root)) is SelectionPhase.SELECTED

    def test_new_selection_replaces_old(self, lifecycle, transcript_root):
        lifecycle.release(_mushroom_span(transcript_root))
        lifecycle.begin(_mushroom_span(transcript_root, 14, 18))
        assert lifecycle.phase is SelectionPhase.SELECTING
        assert not lifecycle.has_selection
        lifecycle.release(_mushroom_span(transcript_root, 14, 18))
        assert lifecycle.selection.text == "teaches"

    def test_listeners_are_notified(self, lifecycle, transcript_root):
        seen = []
        lifecycle.on_transition(lambda old, new: seen.append((old, new)))
        lifecycle.release(_mushroom_span(transcript_root))
        assert seen == [(SelectionPhase.IDLE, SelectionPhase.SELECTED)]


class TestIgnoredSelections:
    def test_collapsed_release_cancels(self, lifecycle, transcript_root):
        lifecycle.begin(_mushroom_span(transcript_root))
        assert lifecycle.release(_mushroom_span(transcript_root, 5, 5)) is SelectionPhase.IDLE
        assert (SelectionPhase.SELECTING, SelectionPhase.CANCELLED) in lifecycle.history

    def test_blank_release_returns_to_idle(self, lifecycle, transcript_root, store):
        lifecycle.begin(_mushroom_span(transcript_root, 3, 4))
        assert lifecycle.release(_mushroom_span(transcript_root, 3, 4)) is SelectionPhase.IDLE
        store.create.assert_not_called()

    def test_speaker_only_release_returns_to_idle(self, lifecycle, transcript_root, store):
        speaker = transcript_root.find("div", class_="speaker").contents[0]
        span = TextSpan(TextPoint(speaker, 0), TextPoint(speaker, 7))
        assert lifecycle.release(span) is SelectionPhase.IDLE
        assert lifecycle.selection is None
        store.create.assert_not_called()

    def test_selection_outside_container_is_ignored(self, transcript_root, store, scheduler):
        paragraph = transcript_root.find(attrs={"data-paragraph-id": "12"})
        lifecycle = SelectionLifecycle(paragraph, store, "doc-1", scheduler=scheduler)
        assert lifecycle.begin(_mushroom_span(transcript_root)) is SelectionPhase.IDLE
        assert lifecycle.release(_mushroom_span(transcript_root)) is SelectionPhase.IDLE
        assert lifecycle.history == []

    def test_begin_with_collapsed_span_does_nothing(self, lifecycle, transcript_root):
        assert lifecycle.begin(_mushroom_span(transcript_root, 5, 5)) is SelectionPhase.IDLE
        assert lifecycle.history == []


class TestCancel:
    def test_click_outside_cancels_selection(self, lifecycle, transcript_root, store):
        lifecycle.release(_mushroom_span(transcript_root))
        assert lifecycle.click_outside() is SelectionPhase.IDLE
        assert not lifecycle.has_selection
        assert lifecycle.history[-2:] == [
            (SelectionPhase.SELECTED, SelectionPhase.CANCELLED),
            (SelectionPhase.CANCELLED, SelectionPhase.IDLE),
        ]
        store.create.assert_not_called()

    def test_collapse_cancels_selection(self, lifecycle, transcript_root):
        lifecycle.release(_mushroom_span(transcript_root))
        assert lifecycle.collapse() is SelectionPhase.IDLE

    def test_click_outside_when_idle_is_noop(self, lifecycle):
        assert lifecycle.click_outside() is SelectionPhase.IDLE
        assert lifecycle.history == []


class TestConfirmFailures:
    def test_confirm_without_selection(self, lifecycle):
        with pytest.raises(InvalidTransitionError):
            lifecycle.confirm()

    def test_store_failure_keeps_selection_for_retry(
        self, lifecycle, transcript_root, store
    ):
        results = iter([None, "ok"])

        def create(payload):
            if next(results) is None:
                return None
            return _stored(payload, annotation_id=7)

        store.create.side_effect = create
        lifecycle.release(_mushroom_span(transcript_root))

        with pytest.raises(AnnotationPersistenceError):
            lifecycle.confirm()
        assert lifecycle.phase is SelectionPhase.SELECTED
        assert lifecycle.has_selection
        assert lifecycle.last_error == "Failed to save highlight"

        annotation = lifecycle.confirm()
        assert annotation.id == 7
        assert lifecycle.phase is SelectionPhase.IDLE
        assert lifecycle.last_error is None
        assert store.create.call_count == 2

    def test_store_exception_is_chained(self, lifecycle, transcript_root, store):
        store.create.side_effect = RuntimeError("disk full")
        lifecycle.release(_mushroom_span(transcript_root))

        with pytest.raises(AnnotationPersistenceError) as exc_info:
            lifecycle.confirm()
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert lifecycle.phase is SelectionPhase.SELECTED

    def test_unanchored_selection_is_refused(self, store, scheduler):
        root = parse_document(
            "<main data-document-container><div>loose words here</div>"
            '<div data-paragraph-id="1"><p>anchored</p></div></main>'
        )
        node = root.div.contents[0]
        lifecycle = SelectionLifecycle(
            find_document_container(root), store, "doc-1", scheduler=scheduler
        )
        lifecycle.release(TextSpan(TextPoint(node, 0), TextPoint(node, 5)))
        assert lifecycle.phase is SelectionPhase.SELECTED

        with pytest.raises(UnanchoredSelectionError):
            lifecycle.confirm()
        assert lifecycle.phase is SelectionPhase.IDLE
        store.create.assert_not_called()


class TestExceedsLimit:
    @pytest.fixture
    def long_lifecycle(self, long_root, store, scheduler):
        return SelectionLifecycle(
            find_document_container(long_root), store, "doc-2", scheduler=scheduler
        )

    def _long_span(self, long_root, last_id=16):
        first = paragraph_text_node(long_root, 1)
        last = paragraph_text_node(long_root, last_id)
        return TextSpan(TextPoint(first, 0), TextPoint(last, 5))

    def test_over_limit_shows_warning(self, long_lifecycle, long_root, scheduler):
        phase = long_lifecycle.release(self._long_span(long_root))

        assert phase is SelectionPhase.EXCEEDS_LIMIT
        assert not long_lifecycle.has_selection
        assert "16 paragraphs" in long_lifecycle.last_error
        delay, _, _ = scheduler.scheduled[-1]
        assert delay == EXCEEDS_LIMIT_DISMISS_SECONDS

    def test_warning_auto_dismisses(self, long_lifecycle, long_root, scheduler):
        long_lifecycle.release(self._long_span(long_root))
        scheduler.fire_last()
        assert long_lifecycle.phase is SelectionPhase.IDLE
        assert long_lifecycle.last_error is None

    def test_new_selection_cancels_pending_dismiss(
        self, long_lifecycle, long_root, scheduler
    ):
        long_lifecycle.release(self._long_span(long_root))
        _, _, handle = scheduler.scheduled[-1]

        long_lifecycle.begin(self._long_span(long_root, last_id=2))
        assert handle.cancelled
        assert long_lifecycle.phase is SelectionPhase.SELECTING

        # A stale callback no longer has any effect
        scheduler.fire_last()
        assert long_lifecycle.phase is SelectionPhase.SELECTING

    def test_earlier_warning_timer_leaves_newer_warning_up(
        self, long_lifecycle, long_root, scheduler
    ):
        long_lifecycle.release(self._long_span(long_root))
        long_lifecycle.release(self._long_span(long_root))
        assert len(scheduler.scheduled) == 2

        # The first timer already fired before it could be cancelled
        _, first_callback, _ = scheduler.scheduled[0]
        first_callback()
        assert long_lifecycle.phase is SelectionPhase.EXCEEDS_LIMIT
        assert long_lifecycle.last_error is not None

        scheduler.fire_last()
        assert long_lifecycle.phase is SelectionPhase.IDLE

    def test_manual_dismiss(self, long_lifecycle, long_root, scheduler):
        long_lifecycle.release(self._long_span(long_root))
        assert long_lifecycle.dismiss_warning() is SelectionPhase.IDLE
        _, _, handle = scheduler.scheduled[-1]
        assert handle.cancelled

    def test_limit_is_configurable(self, transcript_container, transcript_root, store, scheduler):
        lifecycle = SelectionLifecycle(
            transcript_container, store, "doc-1", scheduler=scheduler, max_paragraphs=1
        )
        first = paragraph_text_node(transcript_root, 10)
        second = paragraph_text_node(transcript_root, 11)
        span = TextSpan(TextPoint(first, 0), TextPoint(second, 3))
        assert lifecycle.release(span) is SelectionPhase.EXCEEDS_LIMIT


def test_timer_scheduler_can_be_cancelled():
    callback = Mock()
    handle = timer_scheduler(60, callback)
    handle.cancel()
    callback.assert_not_called()
