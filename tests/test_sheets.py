"""
tests/test_sheets.py -- Sheet gateway and the expense routes built on it.

Covers:
  - option lists: first column, blanks dropped, one token per call
  - expense append: URL, query parameters, row layout and date format
  - form validation: future date, amount below 0.01, long comment
  - failures: missing SPREADSHEET_ID, Sheets API errors (generic 500)
"""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock
from urllib.parse import quote

import pytest
import requests
from fastapi.testclient import TestClient

from auth.delegated import TOKEN_URI
from core.errors import ConfigurationError, UpstreamError
from core.models import ExpenseRow
from sheets.gateway import SHEETS_API, SheetGateway

CATEGORIES = [["Продукты"], ["Транспорт"], [""], [], ["  Связь  "]]
AUTHORS = [["Аня"], ["Петя"]]


def _sheets_response(body: dict) -> MagicMock:
    resp = MagicMock(name="sheets_response")
    resp.json.return_value = body
    return resp


@pytest.fixture
def sheets_api(http_session, token_response) -> MagicMock:
    """Route mocked Google calls by URL: token exchange first, then Sheets ranges."""

    def fake_request(method, url, **kwargs):
        if method == "POST" and url == TOKEN_URI:
            return token_response("ya29.sheets")
        if method == "GET" and url.endswith(quote("Справочники!B2:B", safe="")):
            return _sheets_response({"values": CATEGORIES})
        if method == "GET" and url.endswith(quote("Справочники!E2:E", safe="")):
            return _sheets_response({"values": AUTHORS})
        if method == "POST" and url.endswith(":append"):
            return _sheets_response({"updates": {"updatedRange": "'Расходы'!A42:E42"}})
        raise AssertionError(f"unexpected Google call {method} {url}")

    http_session.request.side_effect = fake_request
    return http_session.request


def _sheets_calls(sheets_api: MagicMock) -> list:
    return [c for c in sheets_api.call_args_list if c.args[1] != TOKEN_URI]


def _expense(**overrides) -> dict:
    body = {
        "date": date.today().isoformat(),
        "category": "Продукты",
        "amount": 125.5,
        "comment": "молоко, хлеб",
        "author": "Аня",
    }
    body.update(overrides)
    return body


class TestOptions:
    def test_lists_categories_and_authors(self, client: TestClient, auth_headers, sheets_api) -> None:
        resp = client.get("/api/sheets/options", headers=auth_headers)
        assert resp.status_code == 200, resp.text
        assert resp.json() == {
            "success": True,
            "categories": ["Продукты", "Транспорт", "Связь"],
            "authors": ["Аня", "Петя"],
        }

    def test_uses_one_delegated_token_for_both_reads(self, client: TestClient, auth_headers, sheets_api) -> None:
        client.get("/api/sheets/options", headers=auth_headers)
        token_calls = [c for c in sheets_api.call_args_list if c.args[1] == TOKEN_URI]
        assert len(token_calls) == 1
        assert len(_sheets_calls(sheets_api)) == 2
        for call in _sheets_calls(sheets_api):
            assert call.kwargs["headers"] == {"Authorization": "Bearer ya29.sheets"}
            assert call.args[1].startswith(f"{SHEETS_API}/sheet-123/values/")

    def test_requires_session_token(self, client: TestClient, sheets_api) -> None:
        assert client.get("/api/sheets/options").status_code == 401
        sheets_api.assert_not_called()


class TestCreateExpense:
    def test_appends_row(self, client: TestClient, auth_headers, sheets_api) -> None:
        resp = client.post("/api/expenses", json=_expense(date="2024-03-05"), headers=auth_headers)
        assert resp.status_code == 201, resp.text
        assert resp.json() == {"success": True, "updatedRange": "'Расходы'!A42:E42"}

        method, url = sheets_api.call_args.args
        assert method == "POST"
        assert url == f"{SHEETS_API}/sheet-123/values/{quote('Расходы!A1', safe='')}:append"
        kwargs = sheets_api.call_args.kwargs
        assert kwargs["params"] == {"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"}
        assert kwargs["json"] == {"values": [["05.03.2024", "Продукты", 125.5, "молоко, хлеб", "Аня"]]}

    def test_comment_and_author_defaults(self, client: TestClient, auth_headers, sheets_api) -> None:
        body = _expense()
        del body["comment"], body["author"]
        resp = client.post("/api/expenses", json=body, headers=auth_headers)
        assert resp.status_code == 201
        row = sheets_api.call_args.kwargs["json"]["values"][0]
        assert row[3:] == ["", "-"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"date": (date.today() + timedelta(days=1)).isoformat()},
            {"amount": 0},
            {"amount": -5},
            {"category": "   "},
            {"comment": "x" * 501},
            {"date": "not-a-date"},
        ],
    )
    def test_invalid_expense_is_422(self, client: TestClient, auth_headers, sheets_api, overrides) -> None:
        resp = client.post("/api/expenses", json=_expense(**overrides), headers=auth_headers)
        assert resp.status_code == 422
        assert resp.json()["success"] is False
        sheets_api.assert_not_called()

    def test_today_is_allowed(self, client: TestClient, auth_headers, sheets_api) -> None:
        resp = client.post("/api/expenses", json=_expense(date=date.today().isoformat()), headers=auth_headers)
        assert resp.status_code == 201

    def test_requires_session_token(self, client: TestClient, sheets_api) -> None:
        assert client.post("/api/expenses", json=_expense()).status_code == 401
        sheets_api.assert_not_called()

    def test_sheets_failure_is_generic_500(self, client: TestClient, auth_headers, sheets_api) -> None:
        route = sheets_api.side_effect

        def denied(method, url, **kwargs):
            if url.endswith(":append"):
                raise requests.HTTPError("403 PERMISSION_DENIED caller lacks access to sheet-123")
            return route(method, url, **kwargs)

        sheets_api.side_effect = denied
        resp = client.post("/api/expenses", json=_expense(), headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "upstream_error"
        assert "PERMISSION_DENIED" not in resp.text


class TestGatewayUnit:
    def test_missing_spreadsheet_id_is_configuration_error(self) -> None:
        minter = MagicMock()
        gateway = SheetGateway(
            "",
            minter,
            MagicMock(),
            categories_range="A!B2:B",
            authors_range="A!E2:E",
            expenses_range="B!A1",
        )
        with pytest.raises(ConfigurationError):
            gateway.list_options()
        minter.mint.assert_not_called()

    def test_non_json_body_is_upstream_error(self, settings) -> None:
        session = MagicMock()
        session.request.return_value.json.side_effect = ValueError("Expecting value")
        gateway = SheetGateway.from_settings(settings, MagicMock(), session)
        with pytest.raises(UpstreamError):
            gateway.list_options()

    def test_timeout_comes_from_settings(self, settings_factory) -> None:
        session = MagicMock()
        session.request.return_value.json.return_value = {}
        gateway = SheetGateway.from_settings(settings_factory(sheets_timeout=3.0), MagicMock(), session)
        assert gateway.list_options() == {"categories": [], "authors": []}
        assert session.request.call_args.kwargs["timeout"] == 3.0


def test_expense_row_formats_date_for_sheet() -> None:
    row = ExpenseRow(date=date(2025, 1, 9), category="Связь", amount=300.0)
    assert row.to_sheet_values() == ["09.01.2025", "Связь", 300.0, "", "-"]
