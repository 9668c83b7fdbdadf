"""Rich-text document synthesis for clipped posts.

Builds the editor's JSON tree as plain dicts:

    {"type": "doc", "content": [<heading|paragraph|image|embed|file|attachment>, ...]}

synthesize() emits nodes in a fixed order:
1. Heading for the title, when present and different from the selected text
2. Body: selected text split on blank lines, else the preview description
3. URL representation, exactly one tier:
   - tier 1: embed node (unreachable until the upstream resolves URLs to embed ids)
   - tier 2: uploaded thumbnail image + link paragraph
   - tier 3: link paragraph
4. Centered image for the relayed page image
5. Attachment (video/audio) or file node for relayed media
6. "Source: <url>" link paragraph unless that exact href is already linked
7. Failsafe paragraph so the document is never empty

Trees are built fresh per request and never mutated after synthesize() returns.
"""

import re
from typing import Any
from urllib.parse import urlparse

from clipper.services.media_relay import UploadedMedia
from clipper.services.preview import LinkPreview

Node = dict[str, Any]

DOCUMENT_TYPE = "doc"
FAILSAFE_TEXT = "Content clipped from web"

_BLANK_LINE_RE = re.compile(r"\n\s*\n")


class DocumentValidationError(ValueError):
    """The tree is not a well-formed, non-empty document."""


# =============================================================================
# Node builders
# =============================================================================


def document(nodes: list[Node]) -> Node:
    return {"type": DOCUMENT_TYPE, "content": list(nodes)}


def text_node(text: str, marks: list[Node] | None = None) -> Node:
    node: Node = {"type": "text", "text": text}
    if marks:
        node["marks"] = marks
    return node


def paragraph(text: str, marks: list[Node] | None = None) -> Node:
    """Paragraph with one text run; blank text gives an empty paragraph."""
    text = (text or "").strip()
    if not text:
        return {"type": "paragraph", "content": []}
    return {"type": "paragraph", "content": [text_node(text, marks)]}


def heading(text: str, level: int = 2) -> Node:
    return {
        "type": "heading",
        "attrs": {"level": level},
        "content": [text_node(text.strip())],
    }


def link_mark(url: str) -> Node:
    return {"type": "link", "attrs": {"href": url, "target": "_blank"}}


def link_paragraph(text: str, url: str) -> Node:
    return paragraph(text, [link_mark(url)])


def image_node(signed_id: str, alignment: str = "center") -> Node:
    return {
        "type": "image",
        "attrs": {"signed_id": signed_id, "alignment": alignment, "alt": "", "title": ""},
    }


def embed_node(sgid: str) -> Node:
    return {"type": "embed", "attrs": {"sgid": sgid}}


def file_node(signed_id: str, filename: str) -> Node:
    return {"type": "file", "attrs": {"signed_id": signed_id, "filename": filename}}


def attachment_node(signed_id: str, filename: str) -> Node:
    return {"type": "attachment", "attrs": {"signed_id": signed_id, "filename": filename}}


# =============================================================================
# Helpers
# =============================================================================


def split_paragraphs(text: str | None) -> list[str]:
    """Split on blank-line boundaries, dropping empty segments."""
    if not text:
        return []
    return [segment.strip() for segment in _BLANK_LINE_RE.split(text) if segment.strip()]


def extract_domain(url: str) -> str:
    """Hostname without a leading "www.", or the raw string if it has none."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    return hostname[4:] if hostname.startswith("www.") else hostname


def _iter_nodes(nodes: list[Node]):
    for node in nodes:
        yield node
        children = node.get("content")
        if isinstance(children, list):
            yield from _iter_nodes(children)


def has_url_embedded(nodes: list[Node], url: str) -> bool:
    """Whether any text run in nodes carries a link mark with exactly this href."""
    for node in _iter_nodes(nodes):
        for mark in node.get("marks") or ():
            if mark.get("type") == "link" and (mark.get("attrs") or {}).get("href") == url:
                return True
    return False


def _url_nodes(url: str, preview: LinkPreview | None) -> list[Node]:
    # TODO: emit embed_node once the upstream exposes a URL -> sgid lookup
    if preview is not None and preview.thumbnail_url and preview.thumbnail_signed_id:
        link_text = preview.title or preview.site or url
        return [image_node(preview.thumbnail_signed_id), link_paragraph(link_text, url)]

    link_text = (preview.title or preview.site if preview else None) or extract_domain(url)
    return [link_paragraph(link_text, url)]


def _failsafe_text(title: str | None, url: str | None, preview: LinkPreview | None) -> str:
    if preview is not None and preview.description.strip():
        return preview.description
    if preview is not None and preview.title and preview.title != title:
        return preview.title
    if title and title.strip():
        return f"Web content: {title.strip()}"
    if url:
        return f"Content from: {extract_domain(url)}"
    return FAILSAFE_TEXT


# =============================================================================
# Synthesis
# =============================================================================


def synthesize(
    title: str | None = None,
    selected_text: str | None = None,
    url: str | None = None,
    preview: LinkPreview | None = None,
    image_ref: UploadedMedia | None = None,
    media_ref: UploadedMedia | None = None,
) -> Node:
    """Build the post document from clip inputs. Never returns an empty document."""
    nodes: list[Node] = []

    if title and title.strip() and title != selected_text:
        nodes.append(heading(title))

    body = split_paragraphs(selected_text)
    if not body and preview is not None:
        body = split_paragraphs(preview.description)
    nodes.extend(paragraph(segment) for segment in body)

    if url:
        nodes.extend(_url_nodes(url, preview))

    if image_ref is not None:
        nodes.append(image_node(image_ref.signed_id, "center"))

    if media_ref is not None:
        if media_ref.category in ("video", "audio"):
            nodes.append(attachment_node(media_ref.signed_id, media_ref.filename or "media"))
        else:
            nodes.append(file_node(media_ref.signed_id, media_ref.filename or "file"))

    if url and not has_url_embedded(nodes, url):
        nodes.append(link_paragraph(f"Source: {url}", url))

    if not nodes:
        nodes.append(paragraph(_failsafe_text(title, url, preview)))

    return document(nodes)


def validate_document(doc: Any) -> None:
    """Check the root type and that content is a non-empty list.

    Raises:
        DocumentValidationError: If the tree is malformed or empty.
    """
    if not isinstance(doc, dict):
        raise DocumentValidationError("Document must be an object")
    if doc.get("type") != DOCUMENT_TYPE:
        raise DocumentValidationError(f'Root node must be of type "{DOCUMENT_TYPE}"')
    content = doc.get("content")
    if not isinstance(content, list):
        raise DocumentValidationError("Document content must be a list")
    if not content:
        raise DocumentValidationError("Document must have at least one content node")


def count_nodes(doc: Node) -> dict[str, int]:
    """Top-level node counts by type, for logging."""
    counts: dict[str, int] = {}
    for node in doc.get("content", []):
        counts[node.get("type", "unknown")] = counts.get(node.get("type", "unknown"), 0) + 1
    return counts
