# Annotation anchoring engine
from .document_tree import TextIndex, TextPoint, TextSpan, parse_document
from .errors import (
    AnchoringError,
    AnnotationPersistenceError,
    InvalidTransitionError,
    ParagraphNotFoundError,
    SelectionExceedsLimitError,
    UnanchoredSelectionError,
)
from .highlight_resolver import render_paragraph, resolve_paragraph, split_into_segments
from .selection_lifecycle import SelectionLifecycle, SelectionPhase
from .selection_normalizer import (
    MAX_HIGHLIGHT_PARAGRAPHS,
    NormalizedSelection,
    normalize_selection,
)
from .selector_builder import SelectorBuildResult, build_selector

__all__ = [
    "TextIndex",
    "TextPoint",
    "TextSpan",
    "parse_document",
    "AnchoringError",
    "AnnotationPersistenceError",
    "InvalidTransitionError",
    "ParagraphNotFoundError",
    "SelectionExceedsLimitError",
    "UnanchoredSelectionError",
    "render_paragraph",
    "resolve_paragraph",
    "split_into_segments",
    "SelectionLifecycle",
    "SelectionPhase",
    "MAX_HIGHLIGHT_PARAGRAPHS",
    "NormalizedSelection",
    "normalize_selection",
    "SelectorBuildResult",
    "build_selector",
]
