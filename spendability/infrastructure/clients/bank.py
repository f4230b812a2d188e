"""Bank aggregation HTTP client for transactions and account balances"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List

import httpx

from spendability.config import settings
from spendability.domain.exceptions import BankAPIError
from spendability.domain.models import Account, Transaction
from spendability.infrastructure.observability.metrics import bank_latency_histogram

STATUS_UNKNOWN = "unknown"
STATUS_CONNECTED = "connected"
STATUS_ERROR = "error"

StatusListener = Callable[[str], None]


def parse_transaction(raw: Dict[str, Any]) -> Transaction:
    """Build a Transaction from one aggregation API record"""
    return Transaction(
        id=raw.get("transaction_id") or raw["id"],
        account_id=raw["account_id"],
        amount=Decimal(str(raw["amount"])),
        date=date.fromisoformat(str(raw["date"])[:10]),
        merchant_name=raw.get("merchant_name") or raw.get("name") or "",
        pending=raw.get("pending", False),
        status=raw.get("status"),
        mask=raw.get("mask"),
        institution_name=raw.get("institution_name"),
    )


def parse_account(raw: Dict[str, Any]) -> Account:
    """Build an Account from one aggregation API record"""
    balances = raw.get("balances") or {}
    available = balances.get("available")
    return Account(
        account_id=raw["account_id"],
        name=raw.get("name") or raw.get("official_name") or raw["account_id"],
        current_balance=Decimal(str(balances["current"])),
        type=raw.get("type") or "depository",
        subtype=raw.get("subtype") or "",
        available_balance=Decimal(str(available)) if available is not None else None,
        mask=raw.get("mask"),
        institution_name=raw.get("institution_name"),
    )


class BankClient:
    """
    Client for the external bank aggregation API.

    Connection health is exposed through `status` instead of a shared global;
    listeners registered with `subscribe` are told whenever it changes.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.bank_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.status = STATUS_UNKNOWN
        self._listeners: List[StatusListener] = []

    def subscribe(self, listener: StatusListener) -> None:
        """Register a callback for connection status changes"""
        self._listeners.append(listener)

    def _set_status(self, status: str) -> None:
        if status == self.status:
            return
        self.status = status
        for listener in self._listeners:
            listener(status)

    async def _get(self, path: str, user_id: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with bank_latency_histogram.time():
                    response = await client.get(f"{self.base_url}{path}", params={"user_id": user_id})
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as e:
                self._set_status(STATUS_ERROR)
                raise BankAPIError(f"Bank API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                self._set_status(STATUS_ERROR)
                raise BankAPIError(f"Bank API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                self._set_status(STATUS_ERROR)
                raise BankAPIError(f"Bank API unreachable: {e}") from e
            except ValueError as e:
                self._set_status(STATUS_ERROR)
                raise BankAPIError(f"Bank API returned invalid JSON: {e}") from e

        self._set_status(STATUS_CONNECTED)
        return data

    async def get_transactions(self, user_id: str) -> List[Transaction]:
        """
        Fetch recent transactions (posted and pending) for a user.

        Raises:
            BankAPIError: On timeout, HTTP errors, or invalid response
        """
        data = await self._get("/bank/transactions", user_id)
        try:
            return [parse_transaction(txn) for txn in data.get("transactions", [])]
        except (KeyError, ValueError, TypeError, ArithmeticError) as e:
            raise BankAPIError(f"Invalid transaction data from bank: {e}") from e

    async def get_accounts(self, user_id: str) -> List[Account]:
        """
        Fetch linked accounts with current and available balances.

        Raises:
            BankAPIError: On timeout, HTTP errors, or invalid response
        """
        data = await self._get("/bank/accounts", user_id)
        try:
            return [parse_account(acct) for acct in data.get("accounts", [])]
        except (KeyError, ValueError, TypeError, ArithmeticError) as e:
            raise BankAPIError(f"Invalid account data from bank: {e}") from e
