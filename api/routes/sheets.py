"""
api/routes/sheets.py -- Expense form data backed by the spreadsheet.

Routes:
  GET  /api/sheets/options  -- category and author lists for the form
  POST /api/expenses        -- validate and append one expense row

Both require a session token. authenticate is listed first so an
unauthenticated call fails before any Google token is minted.
"""

from __future__ import annotations

import requests
from fastapi import APIRouter, Depends

from api.models import ExpenseCreate, ExpenseCreatedResponse, OptionsResponse
from auth.delegated import DelegatedTokenMinter
from auth.dependencies import authenticate, get_http_session, get_token_minter
from core.config import Settings, get_settings
from core.models import Principal
from sheets.gateway import SheetGateway

router = APIRouter()


def get_sheet_gateway(
    settings: Settings = Depends(get_settings),
    minter: DelegatedTokenMinter = Depends(get_token_minter),
    session: requests.Session = Depends(get_http_session),
) -> SheetGateway:
    return SheetGateway.from_settings(settings, minter, session)


@router.get("/sheets/options", response_model=OptionsResponse)
def list_options(
    principal: Principal = Depends(authenticate),
    gateway: SheetGateway = Depends(get_sheet_gateway),
) -> OptionsResponse:
    options = gateway.list_options()
    return OptionsResponse(categories=options["categories"], authors=options["authors"])


@router.post("/expenses", response_model=ExpenseCreatedResponse, status_code=201)
def create_expense(
    body: ExpenseCreate,
    principal: Principal = Depends(authenticate),
    gateway: SheetGateway = Depends(get_sheet_gateway),
) -> ExpenseCreatedResponse:
    """Append the expense to the sheet. Failed writes are reported, not retried."""
    updated_range = gateway.append_expense(body.to_row())
    return ExpenseCreatedResponse(updated_range=updated_range)
