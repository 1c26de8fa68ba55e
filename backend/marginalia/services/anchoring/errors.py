class AnchoringError(Exception):
    """Base class for selection and anchoring failures."""

    pass


class SelectionExceedsLimitError(AnchoringError):
    """Raised when a snapped selection touches too many paragraphs."""

    def __init__(self, paragraph_count: int, max_paragraphs: int):
        self.paragraph_count = paragraph_count
        self.max_paragraphs = max_paragraphs
        super().__init__(
            f"Selection spans {paragraph_count} paragraphs "
            f"(maximum {max_paragraphs})"
        )


class ParagraphNotFoundError(AnchoringError):
    """Raised when a paragraph id is not present in the rendered document."""

    def __init__(self, paragraph_id: int):
        self.paragraph_id = paragraph_id
        super().__init__(f"Paragraph {paragraph_id} is not in the document")


class UnanchoredSelectionError(AnchoringError):
    """Raised when a selection endpoint has no paragraph ancestor."""

    pass


class AnnotationPersistenceError(AnchoringError):
    """Raised when the annotation store fails to save a confirmed selection."""

    pass


class InvalidTransitionError(AnchoringError):
    """Raised when a lifecycle event is not valid in the current phase."""

    pass
