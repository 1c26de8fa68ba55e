"""
Selection Lifecycle Module

State machine driving selection capture during live interaction:

    IDLE -> SELECTING -> SELECTED -> CONFIRMED | CANCELLED | EXCEEDS_LIMIT

CONFIRMED and CANCELLED are recorded in the transition history and then
settle straight back to IDLE. EXCEEDS_LIMIT holds until a scheduled callback
dismisses it (or any other event moves the machine on, which cancels the
callback).

Editing the span of a persisted highlight is not supported here; retagging
and deleting act on stored records through the annotation store.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol

from bs4 import Tag

from ...models.annotation_types import Annotation, AnnotationCreate
from .document_tree import TextSpan, contains
from .errors import (
    AnnotationPersistenceError,
    InvalidTransitionError,
    SelectionExceedsLimitError,
    UnanchoredSelectionError,
)
from .selection_normalizer import (
    EXCEEDS_LIMIT_DISMISS_SECONDS,
    MAX_HIGHLIGHT_PARAGRAPHS,
    NormalizedSelection,
    normalize_selection,
)
from .selector_builder import build_selector

logger = logging.getLogger(__name__)


class SelectionPhase(Enum):
    """Phase of the selection state machine."""

    IDLE = auto()
    SELECTING = auto()
    SELECTED = auto()
    CONFIRMED = auto()
    CANCELLED = auto()
    EXCEEDS_LIMIT = auto()


@dataclass(frozen=True)
class SelectionRect:
    """Bounding box of the selection, used to place the toolbar."""

    x: float
    y: float
    width: float
    height: float


class AnnotationStore(Protocol):
    def create(self, annotation: AnnotationCreate) -> Annotation | None: ...


class Cancellable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], Cancellable]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> Cancellable:
    """Run ``callback`` after ``delay`` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


TransitionListener = Callable[[SelectionPhase, SelectionPhase], None]


class SelectionLifecycle:
    """Coordinates normalize -> build -> persist for one reading session."""

    def __init__(
        self,
        container: Tag,
        store: AnnotationStore,
        document_id: str,
        *,
        scheduler: Scheduler = timer_scheduler,
        max_paragraphs: int = MAX_HIGHLIGHT_PARAGRAPHS,
        dismiss_after: float = EXCEEDS_LIMIT_DISMISS_SECONDS,
        on_clear_selection: Callable[[], None] | None = None,
    ):
        self.container = container
        self.store = store
        self.document_id = document_id
        self.max_paragraphs = max_paragraphs
        self.dismiss_after = dismiss_after

        self.phase = SelectionPhase.IDLE
        self.selection: NormalizedSelection | None = None
        self.rect: SelectionRect | None = None
        self.last_error: str | None = None
        self.history: list[tuple[SelectionPhase, SelectionPhase]] = []

        self._scheduler = scheduler
        self._on_clear_selection = on_clear_selection
        self._listeners: list[TransitionListener] = []
        self._dismiss_handle: Cancellable | None = None
        # Bumped on every warning so a timer already past cancel() is ignored
        self._warning_generation = 0
        # Dismiss callbacks arrive from the timer thread
        self._lock = threading.RLock()

    @property
    def has_selection(self) -> bool:
        return self.selection is not None

    def on_transition(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def begin(self, span: TextSpan) -> SelectionPhase:
        """A selection starts forming inside the container."""
        with self._lock:
            if span.is_collapsed or not self._inside_container(span):
                return self.phase
            if self.phase is SelectionPhase.SELECTED:
                self.selection = None
                self.rect = None
            self._transition(SelectionPhase.SELECTING)
            return self.phase

    def release(
        self, span: TextSpan | None, rect: SelectionRect | None = None
    ) -> SelectionPhase:
        """
        Pointer released. Normalizes the live selection and captures it.

        A collapsed or blank selection returns to IDLE silently. A span over
        the paragraph limit moves to EXCEEDS_LIMIT and schedules the
        auto-dismiss.
        """
        with self._lock:
            if span is None or span.is_collapsed:
                if self.phase in (SelectionPhase.SELECTING, SelectionPhase.SELECTED):
                    self._cancel()
                return self.phase

            if not self._inside_container(span):
                return self.phase

            try:
                normalized = normalize_selection(
                    span, max_paragraphs=self.max_paragraphs
                )
            except SelectionExceedsLimitError as exc:
                self._enter_exceeds_limit(exc)
                return self.phase

            if normalized is None:
                self._cancel()
                return self.phase

            self.selection = normalized
            self.rect = rect
            self.last_error = None
            self._transition(SelectionPhase.SELECTED)
            return self.phase

    def confirm(self, category_id: int | None = None) -> Annotation:
        """
        Persist the current selection as an annotation.

        On success the live selection is cleared and the machine returns to
        IDLE. On a store failure the selection and SELECTED phase are kept
        so the user can retry.

        Raises:
            InvalidTransitionError: nothing is selected
            UnanchoredSelectionError: an endpoint has no paragraph ancestor
            AnnotationPersistenceError: the store failed to save
        """
        with self._lock:
            if self.phase is not SelectionPhase.SELECTED or self.selection is None:
                raise InvalidTransitionError(
                    f"Cannot confirm from {self.phase.name.lower()}"
                )

            result = build_selector(self.selection.span, self.container)
            if not result.is_anchored:
                logger.warning(
                    "Refusing to persist selection without paragraph ancestor "
                    "(document=%s start=%s end=%s)",
                    self.document_id,
                    result.start_paragraph_id,
                    result.end_paragraph_id,
                )
                self._cancel()
                raise UnanchoredSelectionError(
                    "Selection endpoint is not inside a paragraph"
                )

            payload = AnnotationCreate(
                document_id=self.document_id,
                category_id=category_id,
                selector=result.selector,
                highlighted_text=self.selection.text,
                start_paragraph_id=result.start_paragraph_id,
                end_paragraph_id=result.end_paragraph_id,
            )

            cause: Exception | None = None
            try:
                annotation = self.store.create(payload)
            except Exception as exc:
                annotation = None
                cause = exc

            if annotation is None:
                self.last_error = "Failed to save highlight"
                logger.error(
                    "Failed to persist annotation for document %s: %s",
                    self.document_id,
                    cause,
                )
                raise AnnotationPersistenceError(self.last_error) from cause

            self.last_error = None
            self._transition(SelectionPhase.CONFIRMED)
            self._clear_live_selection()
            self._transition(SelectionPhase.IDLE)
            return annotation

    def click_outside(self) -> SelectionPhase:
        with self._lock:
            if self.phase in (SelectionPhase.SELECTING, SelectionPhase.SELECTED):
                self._cancel()
            return self.phase

    def collapse(self) -> SelectionPhase:
        """The live selection collapsed (a plain click inside the container)."""
        return self.click_outside()

    def dismiss_warning(self) -> SelectionPhase:
        with self._lock:
            if self.phase is SelectionPhase.EXCEEDS_LIMIT:
                self._transition(SelectionPhase.IDLE)
            return self.phase

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _inside_container(self, span: TextSpan) -> bool:
        return contains(self.container, span.start.node) and contains(
            self.container, span.end.node
        )

    def _cancel(self) -> None:
        self._transition(SelectionPhase.CANCELLED)
        self._clear_live_selection()
        self._transition(SelectionPhase.IDLE)

    def _clear_live_selection(self) -> None:
        self.selection = None
        self.rect = None
        if self._on_clear_selection is not None:
            self._on_clear_selection()

    def _enter_exceeds_limit(self, exc: SelectionExceedsLimitError) -> None:
        self._clear_live_selection()
        self.last_error = str(exc)
        self._transition(SelectionPhase.EXCEEDS_LIMIT)
        self._warning_generation += 1
        generation = self._warning_generation
        self._dismiss_handle = self._scheduler(
            self.dismiss_after, lambda: self._dismiss_if_current(generation)
        )

    def _dismiss_if_current(self, generation: int) -> None:
        with self._lock:
            if (
                self.phase is SelectionPhase.EXCEEDS_LIMIT
                and generation == self._warning_generation
            ):
                self._dismiss_handle = None
                self._transition(SelectionPhase.IDLE)

    def _transition(self, new_phase: SelectionPhase) -> None:
        old_phase = self.phase
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
        if new_phase is SelectionPhase.IDLE and old_phase is SelectionPhase.EXCEEDS_LIMIT:
            self.last_error = None

        self.phase = new_phase
        self.history.append((old_phase, new_phase))
        logger.debug("Selection %s -> %s", old_phase.name, new_phase.name)
        for listener in self._listeners:
            listener(old_phase, new_phase)
