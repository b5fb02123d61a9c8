# tests/unit/cache/test_fingerprint.py — v2
"""Tests for cache/fingerprint.py — cache key derivation."""

from __future__ import annotations

from pydantic import BaseModel

from deeptime.cache.fingerprint import canonical_schema, compute_fingerprint, normalize_text


class TestComputeFingerprint:
    def test_layout(self):
        fp = compute_fingerprint("some text", {"a": 1}, "gemini-2.5-flash", "staged")
        text_hash, schema_hash, rest = fp.split("-", 2)
        assert len(text_hash) == 16
        assert len(schema_hash) == 16
        assert rest == "gemini-2.5-flash-staged"

    def test_deterministic(self):
        a = compute_fingerprint("text", {"x": [1, 2]}, "m", "turbo")
        b = compute_fingerprint("text", {"x": [1, 2]}, "m", "turbo")
        assert a == b

    def test_schema_key_order_ignored(self):
        a = compute_fingerprint("t", {"a": 1, "b": {"c": 2, "d": 3}}, "m", "staged")
        b = compute_fingerprint("t", {"b": {"d": 3, "c": 2}, "a": 1}, "m", "staged")
        assert a == b

    def test_each_component_changes_key(self):
        base = compute_fingerprint("t", {"a": 1}, "m", "staged")
        assert compute_fingerprint("t2", {"a": 1}, "m", "staged") != base
        assert compute_fingerprint("t", {"a": 2}, "m", "staged") != base
        assert compute_fingerprint("t", {"a": 1}, "m2", "staged") != base
        assert compute_fingerprint("t", {"a": 1}, "m", "turbo") != base

    def test_line_endings_and_trailing_space_ignored(self):
        a = compute_fingerprint("line one\nline two", None, "m", "staged")
        b = compute_fingerprint("line one   \r\nline two\r\n", None, "m", "staged")
        assert a == b

    def test_inner_whitespace_significant(self):
        a = compute_fingerprint("a b", None, "m", "staged")
        b = compute_fingerprint("a  b", None, "m", "staged")
        assert a != b

    def test_pydantic_schema_accepted(self):
        class Schema(BaseModel):
            name: str

        a = compute_fingerprint("t", Schema(name="x"), "m", "staged")
        b = compute_fingerprint("t", {"name": "x"}, "m", "staged")
        assert a == b


class TestHelpers:
    def test_canonical_schema_compact(self):
        assert canonical_schema({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_canonical_schema_keeps_unicode(self):
        assert canonical_schema({"name": "Pléistocène"}) == '{"name":"Pléistocène"}'

    def test_normalize_text(self):
        assert normalize_text("  a \t\r\nb  \n\n") == "a\nb"
