"""Tests for reply token generation and subaddress parsing."""

import re

from mailrouter.services.tokens import (
    extract_email_address,
    extract_token,
    generate_token,
    reply_address,
)

TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{32}$")


class TestGenerateToken:
    def test_shape(self):
        for _ in range(50):
            assert TOKEN_RE.match(generate_token())

    def test_unique(self):
        tokens = {generate_token() for _ in range(200)}
        assert len(tokens) == 200


class TestExtractToken:
    def test_extracts_token(self):
        assert extract_token("reply+AbC123@example.com", "reply", "example.com") == "AbC123"

    def test_plain_address(self):
        assert extract_token("someone@example.com", "reply", "example.com") is None

    def test_case_insensitive_keeps_token_case(self):
        assert extract_token("REPLY+AbC123@Example.COM", "reply", "example.com") == "AbC123"

    def test_other_domain(self):
        assert extract_token("reply+AbC123@other.com", "reply", "example.com") is None

    def test_plus_after_domain(self):
        assert extract_token("reply@example.com+AbC123", "reply", "example.com") is None

    def test_empty_token(self):
        assert extract_token("reply+@example.com", "reply", "example.com") is None

    def test_roundtrip_with_generated_token(self):
        token = generate_token()
        address = reply_address(token, "reply", "example.com")
        assert address == f"reply+{token}@example.com"
        assert extract_token(address, "reply", "example.com") == token


class TestExtractEmailAddress:
    def test_angle_brackets(self):
        assert extract_email_address("Jane Doe <Jane@Example.com>") == "jane@example.com"

    def test_bare(self):
        assert extract_email_address("  Bob@Example.com ") == "bob@example.com"
