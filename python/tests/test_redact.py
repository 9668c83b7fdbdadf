"""Tests for redaction helpers and the log key guard."""

import pytest

from clipper.services.redact import hash_text, safe_kv


class TestHashing:
    def test_hash_is_stable_sha256(self):
        assert hash_text("a@b.c") == hash_text("a@b.c")
        assert len(hash_text("a@b.c")) == 64

    def test_hash_differs_by_input(self):
        assert hash_text("a@b.c") != hash_text("A@b.c")


class TestSafeKv:
    def test_allowed_keys_pass_through(self):
        kwargs = safe_kv(email_sha256="x", selected_text_chars=10, url="https://a.test")

        assert kwargs == {"email_sha256": "x", "selected_text_chars": 10, "url": "https://a.test"}

    @pytest.mark.parametrize("key", ["email", "access_token", "session_token", "selected_text"])
    def test_forbidden_key_raises_in_test(self, key):
        with pytest.raises(ValueError, match="Forbidden log keys"):
            safe_kv(_env="test", **{key: "value"})

    def test_forbidden_key_tolerated_in_prod(self):
        kwargs = safe_kv(_env="prod", email="a@b.c")

        assert kwargs == {"email": "a@b.c"}
