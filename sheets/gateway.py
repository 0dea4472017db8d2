"""
sheets/gateway.py -- Reads option lists from, and appends expense rows to,
the expense spreadsheet through the Sheets v4 REST API.

Every public call mints its own delegated token through the injected minter;
nothing is cached between requests. Failed writes are not queued or retried:
the error is logged and surfaces to the operator as UpstreamError.
"""

import logging
from typing import Any

import requests

from auth.delegated import DelegatedTokenMinter
from core.config import Settings
from core.errors import ConfigurationError, UpstreamError
from core.models import ExpenseRow

logger = logging.getLogger("expensegate.sheets")

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"


def _quote_range(a1_range: str) -> str:
    # Sheet names are Cyrillic and the range contains "!", so escape everything.
    return requests.utils.quote(a1_range, safe="")


class SheetGateway:
    def __init__(
        self,
        spreadsheet_id: str,
        minter: DelegatedTokenMinter,
        session: requests.Session,
        *,
        categories_range: str,
        authors_range: str,
        expenses_range: str,
        timeout: float = 15.0,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.categories_range = categories_range
        self.authors_range = authors_range
        self.expenses_range = expenses_range
        self.timeout = timeout
        self._minter = minter
        self._session = session

    @classmethod
    def from_settings(
        cls, settings: Settings, minter: DelegatedTokenMinter, session: requests.Session
    ) -> "SheetGateway":
        return cls(
            settings.spreadsheet_id,
            minter,
            session,
            categories_range=settings.categories_range,
            authors_range=settings.authors_range,
            expenses_range=settings.expenses_range,
            timeout=settings.sheets_timeout,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def list_options(self) -> dict[str, list[str]]:
        """Return {"categories": [...], "authors": [...]} for the expense form."""
        headers = self._auth_headers()
        return {
            "categories": self._read_column(self.categories_range, headers),
            "authors": self._read_column(self.authors_range, headers),
        }

    def append_expense(self, row: ExpenseRow) -> str:
        """Append one row below the expenses table. Returns the updated A1 range."""
        url = f"{SHEETS_API}/{self.spreadsheet_id}/values/{_quote_range(self.expenses_range)}:append"
        data = self._request(
            "POST",
            url,
            self._auth_headers(),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row.to_sheet_values()]},
        )
        updated_range = data.get("updates", {}).get("updatedRange", "")
        logger.info("Appended expense row (%s, %s) at %s", row.category, row.amount, updated_range or "?")
        return updated_range

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        if not self.spreadsheet_id:
            logger.error("SPREADSHEET_ID is not set")
            raise ConfigurationError("Spreadsheet is not configured")
        token = self._minter.mint()
        return {"Authorization": f"{token.token_type} {token.value}"}

    def _read_column(self, a1_range: str, headers: dict[str, str]) -> list[str]:
        url = f"{SHEETS_API}/{self.spreadsheet_id}/values/{_quote_range(a1_range)}"
        data = self._request("GET", url, headers)
        rows = data.get("values", [])
        # First cell of each row; blank and empty rows are dropped.
        return [str(r[0]).strip() for r in rows if r and str(r[0]).strip()]

    def _request(self, method: str, url: str, headers: dict[str, str], **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.error("Sheets API %s %s failed: %s", method, url, exc)
            raise UpstreamError("Spreadsheet request failed") from exc
        except ValueError as exc:
            logger.error("Sheets API %s %s returned a non-JSON body: %s", method, url, exc)
            raise UpstreamError("Spreadsheet request failed") from exc
