"""
Tests for the ad-hoc query gate: configuration, shape filter and passcode.
"""
import pytest

from errors import (
    ForbiddenKeyword,
    GateUnconfigured,
    InvalidPasscode,
    MissingRequiredField,
    NonSelectQuery,
)
from services.query_gate import QueryGate, check_query_shape


class TestCheckQueryShape:

    @pytest.mark.parametrize("query", [
        "SELECT * FROM Widgets",
        "  select Id from Widgets  ",
        "SeLeCt 1",
    ])
    def test_accepts_selects(self, query):
        assert check_query_shape(query) == query

    @pytest.mark.parametrize("query", [None, "", "   \n"])
    def test_missing_query(self, query):
        with pytest.raises(MissingRequiredField) as exc_info:
            check_query_shape(query)
        assert exc_info.value.message == "query is required."

    @pytest.mark.parametrize("query", [
        "WITH x AS (SELECT 1) SELECT * FROM x",
        "DELETE FROM Widgets",
        "(SELECT 1)",
    ])
    def test_non_select(self, query):
        with pytest.raises(NonSelectQuery):
            check_query_shape(query)

    @pytest.mark.parametrize("query,keyword", [
        ("SELECT 1; DROP TABLE Widgets", "drop"),
        ("select * from Widgets; TRUNCATE TABLE Widgets", "truncate"),
        ("SELECT * FROM Widgets WHERE x = 'exec'", "exec"),
    ])
    def test_forbidden_keywords(self, query, keyword):
        with pytest.raises(ForbiddenKeyword) as exc_info:
            check_query_shape(query)
        assert exc_info.value.keyword == keyword

    def test_keyword_inside_identifier_is_rejected(self):
        # Substring match: column names containing a keyword are rejected too
        with pytest.raises(ForbiddenKeyword) as exc_info:
            check_query_shape("SELECT updated_at FROM Widgets")
        assert exc_info.value.keyword == "update"


class TestQueryGate:

    def test_unconfigured_rejects_everything(self):
        gate = QueryGate(None)
        assert not gate.configured
        with pytest.raises(GateUnconfigured):
            gate.authorize("SELECT 1", "anything")
        with pytest.raises(GateUnconfigured):
            gate.authorize("DROP TABLE Widgets", None)

    def test_empty_passcode_counts_as_unconfigured(self):
        assert not QueryGate("").configured

    def test_wrong_passcode(self):
        gate = QueryGate("secret")
        with pytest.raises(InvalidPasscode):
            gate.authorize("SELECT 1", "guess")
        with pytest.raises(InvalidPasscode):
            gate.authorize("SELECT 1", None)

    def test_correct_passcode(self):
        assert QueryGate("secret").authorize("SELECT 1", "secret") == "SELECT 1"

    def test_shape_checked_before_passcode(self):
        gate = QueryGate("secret")
        with pytest.raises(NonSelectQuery):
            gate.authorize("DELETE FROM Widgets", "guess")
        with pytest.raises(ForbiddenKeyword):
            gate.authorize("SELECT 1; DROP TABLE Widgets", None)
        with pytest.raises(MissingRequiredField):
            gate.authorize(None, "guess")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REPORTING_QUERY_PASSCODE", "from-env")
        gate = QueryGate.from_env()
        assert gate.configured
        assert gate.authorize("SELECT 1", "from-env") == "SELECT 1"

    def test_from_env_unset(self, monkeypatch):
        monkeypatch.delenv("REPORTING_QUERY_PASSCODE", raising=False)
        assert not QueryGate.from_env().configured
