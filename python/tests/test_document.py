"""Tests for post document synthesis.

Tests cover:
- Documents are never empty, for any combination of absent inputs
- Selected text splits into paragraphs on blank lines
- URL representation tiers (thumbnail + link, link only)
- No duplicate source link when the URL is already linked
- Heading rule, image and media nodes
- Document validation
"""

import itertools

import pytest

from clipper.services.document import (
    FAILSAFE_TEXT,
    DocumentValidationError,
    count_nodes,
    extract_domain,
    has_url_embedded,
    link_paragraph,
    paragraph,
    split_paragraphs,
    synthesize,
    validate_document,
)
from clipper.services.media_relay import UploadedMedia
from clipper.services.preview import LinkPreview

URL = "https://www.example.com/articles/42"


def _preview(**overrides) -> LinkPreview:
    fields = {
        "url": URL,
        "title": "The Answer",
        "site": "Example",
        "description": "",
        "cached_at": "2026-01-01T00:00:00+00:00",
    }
    fields.update(overrides)
    return LinkPreview(**fields)


def _media(category: str, content_type: str, filename: str = "clip.bin") -> UploadedMedia:
    return UploadedMedia(
        signed_id=f"blob-{category}",
        filename=filename,
        content_type=content_type,
        size=10,
        category=category,
    )


def _types(doc) -> list[str]:
    return [node["type"] for node in doc["content"]]


def _text(node) -> str:
    return "".join(child.get("text", "") for child in node.get("content", []))


class TestFailsafe:
    """Whatever is missing, the document has content."""

    def test_never_empty_for_absent_inputs(self):
        blanks = [None, "", "   "]
        for title, selected_text in itertools.product(blanks, blanks):
            doc = synthesize(title=title, selected_text=selected_text)

            validate_document(doc)
            assert len(doc["content"]) == 1
            assert _text(doc["content"][0]) == FAILSAFE_TEXT

    def test_url_only_document(self):
        doc = synthesize(url=URL)

        assert _types(doc) == ["paragraph"]
        run = doc["content"][0]["content"][0]
        assert run["text"] == "example.com"
        assert run["marks"][0]["attrs"] == {"href": URL, "target": "_blank"}

    def test_title_only_document(self):
        doc = synthesize(title="Just a title")

        assert _types(doc) == ["heading"]
        assert doc["content"][0]["attrs"] == {"level": 2}


class TestBody:
    def test_selected_text_split_on_blank_lines(self):
        doc = synthesize(selected_text="a\n\nb\n  \nc")

        assert _types(doc) == ["paragraph", "paragraph", "paragraph"]
        assert [_text(node) for node in doc["content"]] == ["a", "b", "c"]

    def test_single_newlines_stay_in_paragraph(self):
        assert split_paragraphs("line one\nline two") == ["line one\nline two"]

    def test_description_used_when_no_selection(self):
        preview = _preview(description="First.\n\nSecond.")

        doc = synthesize(url=URL, preview=preview)

        assert [_text(node) for node in doc["content"][:2]] == ["First.", "Second."]

    def test_selection_wins_over_description(self):
        preview = _preview(description="Description text")

        doc = synthesize(selected_text="Selected", url=URL, preview=preview)

        texts = [_text(node) for node in doc["content"]]
        assert "Selected" in texts
        assert "Description text" not in texts

    def test_heading_skipped_when_title_equals_selection(self):
        doc = synthesize(title="Same", selected_text="Same")

        assert _types(doc) == ["paragraph"]

    def test_heading_precedes_body(self):
        doc = synthesize(title="Title", selected_text="Body")

        assert _types(doc) == ["heading", "paragraph"]


class TestUrlTiers:
    def test_link_text_prefers_preview_title(self):
        doc = synthesize(url=URL, preview=_preview())

        assert _types(doc) == ["paragraph"]
        assert _text(doc["content"][0]) == "The Answer"

    def test_link_text_falls_back_to_site(self):
        doc = synthesize(url=URL, preview=_preview(title=""))

        assert _text(doc["content"][0]) == "Example"

    def test_thumbnail_tier_requires_uploaded_thumbnail(self):
        preview = _preview(thumbnail_url="https://cdn.example.com/t.jpg")

        doc = synthesize(url=URL, preview=preview)

        assert "image" not in _types(doc)

    def test_thumbnail_tier(self):
        preview = _preview(
            thumbnail_url="https://cdn.example.com/t.jpg", thumbnail_signed_id="blob-thumb"
        )

        doc = synthesize(url=URL, preview=preview)

        assert _types(doc) == ["image", "paragraph"]
        assert doc["content"][0]["attrs"]["signed_id"] == "blob-thumb"
        assert doc["content"][0]["attrs"]["alignment"] == "center"
        assert has_url_embedded(doc["content"], URL)

    def test_no_duplicate_source_link(self):
        doc = synthesize(title="T", selected_text="S", url=URL, preview=_preview())

        linked = [
            node for node in doc["content"] if has_url_embedded([node], URL)
        ]
        assert len(linked) == 1
        assert not any(_text(node).startswith("Source:") for node in doc["content"])


class TestHasUrlEmbedded:
    def test_exact_href_found(self):
        assert has_url_embedded([link_paragraph("x", URL)], URL)

    def test_same_domain_other_path_not_found(self):
        nodes = [link_paragraph("x", "https://www.example.com/other")]

        assert not has_url_embedded(nodes, URL)

    def test_plain_text_mention_not_found(self):
        assert not has_url_embedded([paragraph(URL)], URL)


class TestMediaNodes:
    def test_image_ref_centered(self):
        image = _media("image", "image/png", "cat.png")

        doc = synthesize(title="T", image_ref=image)

        assert _types(doc) == ["heading", "image"]
        assert doc["content"][1]["attrs"]["signed_id"] == "blob-image"

    @pytest.mark.parametrize(
        "category,content_type",
        [("video", "video/mp4"), ("audio", "audio/mpeg")],
    )
    def test_video_and_audio_are_attachments(self, category, content_type):
        doc = synthesize(title="T", media_ref=_media(category, content_type, "clip.mp4"))

        assert _types(doc) == ["heading", "attachment"]
        assert doc["content"][1]["attrs"]["filename"] == "clip.mp4"

    def test_other_media_is_file(self):
        doc = synthesize(title="T", media_ref=_media("file", "application/pdf", "doc.pdf"))

        assert _types(doc) == ["heading", "file"]

    def test_full_order(self):
        preview = _preview(thumbnail_url="https://t.test/t.jpg", thumbnail_signed_id="blob-thumb")

        doc = synthesize(
            title="Title",
            selected_text="Body",
            url=URL,
            preview=preview,
            image_ref=_media("image", "image/png"),
            media_ref=_media("video", "video/mp4"),
        )

        assert _types(doc) == ["heading", "paragraph", "image", "paragraph", "image", "attachment"]
        assert count_nodes(doc) == {"heading": 1, "paragraph": 2, "image": 2, "attachment": 1}


class TestValidateDocument:
    @pytest.mark.parametrize(
        "doc",
        [None, [], {"type": "paragraph", "content": [{}]}, {"type": "doc"}, {"type": "doc", "content": []}],
    )
    def test_invalid_documents(self, doc):
        with pytest.raises(DocumentValidationError):
            validate_document(doc)

    def test_valid_document(self):
        validate_document({"type": "doc", "content": [paragraph("x")]})


class TestExtractDomain:
    def test_strips_www(self):
        assert extract_domain(URL) == "example.com"

    def test_returns_raw_string_without_host(self):
        assert extract_domain("not-a-url") == "not-a-url"
