"""Tests for schema hash computation."""

import base64
import hashlib

from schemaspine.core.hashing import SCHEMA_HASH_LENGTH, compute_schema_hash


class TestComputeSchemaHash:
    def test_deterministic(self):
        sql = "CREATE MATERIALIZED VIEW v1 AS SELECT 1"
        assert compute_schema_hash(sql) == compute_schema_hash(sql)

    def test_matches_urlsafe_base64_sha256(self):
        sql = "CREATE FUNCTION f() RETURNS int AS $$ SELECT 1 $$ LANGUAGE sql"
        expected = base64.urlsafe_b64encode(hashlib.sha256(sql.encode()).digest()).decode()
        assert compute_schema_hash(sql) == expected

    def test_length_is_padded_44(self):
        assert len(compute_schema_hash("")) == SCHEMA_HASH_LENGTH == 44
        assert compute_schema_hash("x").endswith("=")

    def test_whitespace_is_significant(self):
        """Reformatting a definition counts as a change."""
        assert compute_schema_hash("SELECT 1") != compute_schema_hash("SELECT  1")

    def test_urlsafe_alphabet(self):
        """No '+' or '/' ever appears, across many inputs."""
        for i in range(200):
            h = compute_schema_hash(f"SELECT {i}")
            assert "+" not in h and "/" not in h

    def test_empty_string_known_value(self):
        assert compute_schema_hash("") == "47DEQpj8HBSa-_TImW-5JCeuQeRkm5NMpJWZG3hSuFU="
