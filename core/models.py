from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Dates are written to the sheet as dd.mm.yyyy. USER_ENTERED input lets
# Sheets parse this into a real date cell for the spreadsheet's locale.
SHEET_DATE_FORMAT = "%d.%m.%Y"

DEFAULT_AUTHOR = "-"


@dataclass(frozen=True)
class Principal:
    """The authenticated operator, as decoded from a valid session token."""

    username: str
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    username: str
    issued_at: datetime
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())


@dataclass(frozen=True)
class DelegatedAccessToken:
    value: str
    expires_at: datetime
    expires_in: int
    token_type: str = "Bearer"


@dataclass(frozen=True)
class RateLimitDecision:
    limit: int
    remaining: int
    reset_at: float  # epoch seconds when the current window closes
    retry_after: int = 0  # seconds; non-zero only when rejected

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class ExpenseRow:
    date: date
    category: str
    amount: float
    comment: str = ""
    author: str = DEFAULT_AUTHOR

    def to_sheet_values(self) -> list[Union[str, float]]:
        """Column order of the expenses sheet: date, category, amount, comment, author."""
        return [
            self.date.strftime(SHEET_DATE_FORMAT),
            self.category,
            self.amount,
            self.comment,
            self.author,
        ]
