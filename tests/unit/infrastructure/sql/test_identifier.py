"""
Unit tests for SQL identifier quoting.
"""

import pytest

from flatfile_bridge.infrastructure.sql.core.identifier import (
    qualify_column,
    quote_identifier,
)


@pytest.mark.unit
class TestQuoteIdentifier:
    """Tests for quote_identifier function."""

    def test_quote_ascii_name(self):
        assert quote_identifier("events") == "`events`"

    def test_quote_non_ascii_name(self):
        assert quote_identifier("événements") == "`événements`"

    def test_quote_name_with_spaces_and_dots(self):
        """Spaces and dots stay inside one identifier."""
        assert quote_identifier("order total.v2") == "`order total.v2`"

    def test_internal_backtick_is_doubled(self):
        assert quote_identifier("a`b") == "`a``b`"

    def test_none_yields_empty_quoted_form(self):
        assert quote_identifier(None) == "``"

    def test_empty_string_yields_empty_quoted_form(self):
        assert quote_identifier("") == "``"

    def test_quoting_twice_is_not_idempotent(self):
        """Callers must quote exactly once; a second pass changes the text."""
        once = quote_identifier("users")
        twice = quote_identifier(once)
        assert twice != once
        assert twice == "```users```"


@pytest.mark.unit
class TestQualifyColumn:
    """Tests for qualify_column function."""

    def test_qualify_quotes_both_parts(self):
        assert qualify_column("orders", "total") == "`orders`.`total`"

    def test_qualify_escapes_each_part(self):
        assert qualify_column("o`rders", "to`tal") == "`o``rders`.`to``tal`"
