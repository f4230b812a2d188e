"""Unit tests for the bank aggregation client"""

import httpx
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from spendability.domain.exceptions import BankAPIError
from spendability.infrastructure.clients.bank import (
    STATUS_CONNECTED,
    STATUS_ERROR,
    STATUS_UNKNOWN,
    BankClient,
    parse_account,
    parse_transaction,
)

BASE_URL = "http://bank.test"


def _response(status_code: int, payload=None, path: str = "/bank/transactions") -> httpx.Response:
    request = httpx.Request("GET", f"{BASE_URL}{path}")
    if payload is None:
        return httpx.Response(status_code, content=b"not json", request=request)
    return httpx.Response(status_code, json=payload, request=request)


def test_parse_transaction():
    tx = parse_transaction(
        {
            "transaction_id": "tx_1",
            "account_id": "chk",
            "amount": -120.5,
            "date": "2025-11-21T08:15:00Z",
            "name": "ACME UTILITY",
            "pending": "true",
        }
    )

    assert tx.id == "tx_1"
    assert tx.amount == Decimal("-120.5")
    assert tx.date == date(2025, 11, 21)
    assert tx.merchant_name == "ACME UTILITY"
    assert tx.pending == "true"


def test_parse_account():
    account = parse_account(
        {
            "account_id": "chk",
            "name": "Everyday Checking",
            "type": "depository",
            "subtype": "checking",
            "balances": {"current": "2000.00", "available": 1950},
        }
    )

    assert account.current_balance == Decimal("2000.00")
    assert account.available_balance == Decimal("1950")
    assert account.type == "depository"


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_get_transactions_success(mock_get: AsyncMock):
    mock_get.return_value = _response(
        200,
        {"transactions": [{"id": "tx_1", "account_id": "chk", "amount": "-15.49", "date": "2025-11-03", "merchant_name": "NETFLIX.COM"}]},
    )
    client = BankClient(base_url=BASE_URL)
    statuses = []
    client.subscribe(statuses.append)

    transactions = await client.get_transactions("user_1")

    assert [t.id for t in transactions] == ["tx_1"]
    assert client.status == STATUS_CONNECTED
    assert statuses == [STATUS_CONNECTED]
    mock_get.assert_called_once_with(f"{BASE_URL}/bank/transactions", params={"user_id": "user_1"})


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_get_accounts_success(mock_get: AsyncMock):
    mock_get.return_value = _response(
        200,
        {"accounts": [{"account_id": "chk", "name": "Checking", "balances": {"current": 500}}]},
        path="/bank/accounts",
    )

    accounts = await BankClient(base_url=BASE_URL).get_accounts("user_1")

    assert accounts[0].current_balance == Decimal("500")


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_timeout_raises_bank_error(mock_get: AsyncMock):
    mock_get.side_effect = httpx.TimeoutException("timed out")
    client = BankClient(base_url=BASE_URL, timeout=1.0)

    with pytest.raises(BankAPIError, match="timeout"):
        await client.get_transactions("user_1")
    assert client.status == STATUS_ERROR


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_http_error_raises_bank_error(mock_get: AsyncMock):
    mock_get.return_value = _response(502, {"error": "upstream"})

    with pytest.raises(BankAPIError, match="502"):
        await BankClient(base_url=BASE_URL).get_transactions("user_1")


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_connection_error_raises_bank_error(mock_get: AsyncMock):
    mock_get.side_effect = httpx.ConnectError("refused")

    with pytest.raises(BankAPIError, match="unreachable"):
        await BankClient(base_url=BASE_URL).get_accounts("user_1")


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_invalid_json_raises_bank_error(mock_get: AsyncMock):
    mock_get.return_value = _response(200)

    with pytest.raises(BankAPIError, match="invalid JSON"):
        await BankClient(base_url=BASE_URL).get_transactions("user_1")


@patch("httpx.AsyncClient.get", new_callable=AsyncMock)
async def test_malformed_records_raise_bank_error(mock_get: AsyncMock):
    mock_get.return_value = _response(200, {"transactions": [{"id": "tx_1"}]})

    with pytest.raises(BankAPIError, match="Invalid transaction data"):
        await BankClient(base_url=BASE_URL).get_transactions("user_1")


def test_initial_status_is_unknown():
    assert BankClient(base_url=BASE_URL).status == STATUS_UNKNOWN
