"""
Shared fixtures for the anchoring engine and service tests.

The shared db_service is created at import time, so its database is pointed
at a throwaway file before any marginalia module is imported.
"""

import html
import os
import tempfile

_TEST_DB_DIR = tempfile.mkdtemp(prefix="marginalia-tests-")
os.environ.setdefault("MARGINALIA_DB_PATH", os.path.join(_TEST_DB_DIR, "shared.db"))

import pytest  # noqa: E402

from marginalia.models.paragraph import Paragraph  # noqa: E402
from marginalia.services.anchoring.document_tree import parse_document  # noqa: E402
from marginalia.services.anchoring.paragraph_locator import (  # noqa: E402
    find_document_container,
    find_paragraph_by_id,
    text_scope,
)

MUSHROOM_TEXT = "The mushroom teaches us about the nature of time."


def render_document(paragraphs: list[Paragraph]) -> str:
    """Render paragraphs the way the reader does: decoration beside a <p>."""
    parts = ["<main data-document-container>"]
    for paragraph in paragraphs:
        parts.append(
            f'<div data-paragraph-id="{paragraph.id}" '
            f'data-paragraph-position="{paragraph.position}">'
        )
        if paragraph.timestamp:
            parts.append(f'<span class="timestamp">{paragraph.timestamp}</span>')
        if paragraph.speaker:
            parts.append(f'<div class="speaker">{paragraph.speaker}</div>')
        parts.append(f"<p>{html.escape(paragraph.text)}</p></div>")
    parts.append("</main>")
    return "".join(parts)


def paragraph_text_node(root, paragraph_id: int):
    """The single text node inside a paragraph's <p>."""
    element = find_paragraph_by_id(root, paragraph_id)
    return text_scope(element).contents[0]


@pytest.fixture
def transcript_paragraphs() -> list[Paragraph]:
    return [
        Paragraph(
            id=10,
            position=0,
            text=MUSHROOM_TEXT,
            speaker="Terence",
            timestamp="0:05",
        ),
        Paragraph(
            id=11,
            position=1,
            text="Language is the thing that makes us human.",
            speaker="Terence",
            timestamp="0:06",
        ),
        Paragraph(
            id=12,
            position=2,
            text="Nobody knows where the boundaries of the imagination lie.",
            speaker="Guest",
            timestamp="0:07",
        ),
    ]


@pytest.fixture
def transcript_html(transcript_paragraphs) -> str:
    return render_document(transcript_paragraphs)


@pytest.fixture
def transcript_root(transcript_html):
    return parse_document(transcript_html)


@pytest.fixture
def transcript_container(transcript_root):
    return find_document_container(transcript_root)


@pytest.fixture
def long_paragraphs() -> list[Paragraph]:
    """Sixteen undecorated paragraphs, ids 1..16."""
    return [
        Paragraph(id=i, position=i - 1, text=f"Paragraph number {i} has words.")
        for i in range(1, 17)
    ]


@pytest.fixture
def long_root(long_paragraphs):
    return parse_document(render_document(long_paragraphs))


@pytest.fixture
def temp_db_path():
    """Create temporary database path"""
    with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".db") as f:
        db_path = f.name

    yield db_path

    if os.path.exists(db_path):
        os.unlink(db_path)
