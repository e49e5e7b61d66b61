"""
Tests for bookmark selectors.
"""
import pytest

from marklog.errors import NoSuchId
from marklog.selectors import AllRows, IdRange, SingleId, parse_selector, resolve


class TestParseSelector:
    """Test the textual selector forms."""

    def test_all(self):
        assert parse_selector("*") == AllRows()

    def test_single(self):
        assert parse_selector(" 7 ") == SingleId(7)

    def test_range(self):
        assert parse_selector("3-9") == IdRange(3, 9)

    def test_reversed_range_bounds(self):
        selector = parse_selector("9-3")
        assert (selector.low, selector.high) == (3, 9)

    @pytest.mark.parametrize("text", ["", "abc", "1-", "-5", "1-2-3", "0", "2.5"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_selector(text)


class TestResolve:
    """Test resolving selectors against a store session."""

    def test_single_existing(self, populated_store):
        with populated_store.session() as session:
            assert resolve(session, SingleId(3)) == [3]

    def test_single_missing(self, populated_store):
        with pytest.raises(NoSuchId):
            with populated_store.session() as session:
                resolve(session, SingleId(10))

    def test_range_clipped_to_existing(self, populated_store):
        with populated_store.session() as session:
            assert resolve(session, IdRange(4, 100)) == [4, 5]

    def test_empty_range(self, populated_store):
        with populated_store.session() as session:
            assert resolve(session, IdRange(10, 20)) == []

    def test_all_rows(self, populated_store):
        with populated_store.session() as session:
            assert resolve(session, AllRows()) == [1, 2, 3, 4, 5]

    def test_unknown_selector(self, populated_store):
        with pytest.raises(TypeError):
            with populated_store.session() as session:
                resolve(session, "5")
