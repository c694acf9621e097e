from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import aiohttp

from payout_bot.models.entities import (
    AuthResult,
    BankAccount,
    KycStatus,
    TokenBalance,
    TransferPage,
    TransferRecord,
    TransferResult,
    Wallet,
    WalletBalance,
    WithdrawalQuote,
)

logger = logging.getLogger(__name__)

PURPOSE_CODE = "self"

T = TypeVar("T")


class ApiError(Exception):
    """Raised when the payments API fails or answers with an error."""

    def __init__(self, message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class AuthExpiredError(ApiError):
    """Raised when an authenticated call is rejected with 401."""


def _error_message(payload: Any, status: int, reason: Optional[str]) -> str:
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, list):
            return ", ".join(str(item) for item in message)
        if isinstance(message, dict):
            return json.dumps(message)
        if message:
            return str(message)
        if payload.get("error"):
            return str(payload["error"])
    return f"API error: {status} {reason or ''}".strip()


def _error_code(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        code = payload.get("code") or payload.get("errorCode")
        if code is not None:
            return str(code)
    return None


def _unwrap_list(payload: Any, *keys: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys or ("data", "items"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _int_or_default(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default


def _dict_or_empty(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _parse_response(parser: Callable[..., T], body: Any, *args: Any) -> T:
    try:
        return parser(body, *args)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Malformed response for %s: %s", parser.__name__, exc)
        raise ApiError("The payments service sent a malformed response") from exc


def parse_balances(payload: Any) -> List[WalletBalance]:
    wallets: List[WalletBalance] = []
    for item in _unwrap_list(payload, "data"):
        if not isinstance(item, dict) or not item.get("network"):
            continue
        tokens: List[TokenBalance] = []
        for token in item.get("balances") or item.get("tokens") or []:
            if not isinstance(token, dict):
                continue
            symbol = token.get("symbol") or token.get("token")
            if not symbol:
                continue
            tokens.append(
                TokenBalance(
                    symbol=str(symbol),
                    balance=str(token.get("balance") or "0"),
                    decimals=_int_or_default(token.get("decimals") or 8, 8),
                    address=_str_or_none(token.get("address")),
                )
            )
        # flat {network, token, balance} rows from older API versions
        if not tokens and item.get("token"):
            tokens.append(TokenBalance(symbol=str(item["token"]), balance=str(item.get("balance") or "0")))
        wallets.append(
            WalletBalance(
                network=str(item["network"]),
                tokens=tokens,
                wallet_id=_str_or_none(item.get("walletId")),
                is_default=bool(item.get("isDefault")),
            )
        )
    return wallets


def parse_wallet(item: Dict[str, Any]) -> Wallet:
    return Wallet(
        id=str(item.get("id") or item.get("walletId") or ""),
        network=str(item.get("network") or ""),
        address=str(item.get("walletAddress") or item.get("address") or ""),
        is_default=bool(item.get("isDefault")),
    )


def parse_bank_account(item: Dict[str, Any]) -> BankAccount:
    bank = _dict_or_empty(item.get("bankAccount"))
    number = str(bank.get("bankAccountNumber") or item.get("accountNumber") or "")
    return BankAccount(
        id=str(item.get("id") or ""),
        bank_name=str(bank.get("bankName") or item.get("bankName") or "Bank account"),
        last_four_digits=str(item.get("lastFourDigits") or number[-4:]),
        country=_str_or_none(item.get("country") or bank.get("country")),
        status=str(item.get("status") or "unknown"),
    )


def parse_quote(payload: Any) -> WithdrawalQuote:
    if not isinstance(payload, dict) or not payload.get("quotePayload") or not payload.get("quoteSignature"):
        raise ApiError("Quote response is missing the signed payload")
    details: Dict[str, Any] = {}
    raw_payload = payload["quotePayload"]
    if isinstance(raw_payload, str):
        try:
            decoded = json.loads(raw_payload)
        except ValueError:
            decoded = {}
        if isinstance(decoded, dict):
            details = decoded
    elif isinstance(raw_payload, dict):
        details = raw_payload
        raw_payload = json.dumps(raw_payload)
    return WithdrawalQuote(
        quote_payload=str(raw_payload),
        quote_signature=str(payload["quoteSignature"]),
        rate=_str_or_none(details.get("rate") or payload.get("rate")),
        total_fee=_str_or_none(details.get("totalFee") or payload.get("totalFee")),
        to_amount=_str_or_none(details.get("toAmount") or payload.get("toAmount")),
        to_currency=_str_or_none(details.get("toCurrency") or payload.get("toCurrency")),
    )


def parse_transfer_record(item: Dict[str, Any]) -> TransferRecord:
    destination = item.get("destinationAccount") or item.get("receiver") or {}
    counterparty = None
    if isinstance(destination, dict):
        counterparty = (
            destination.get("payeeEmail")
            or destination.get("email")
            or destination.get("walletAddress")
            or destination.get("address")
            or destination.get("bankName")
        )
    return TransferRecord(
        id=str(item.get("id") or ""),
        type=str(item.get("type") or "transfer"),
        status=str(item.get("status") or "unknown"),
        amount=str(item.get("amount") or "0"),
        currency=str(item.get("currency") or item.get("token") or ""),
        network=_str_or_none(item.get("network") or (destination.get("network") if isinstance(destination, dict) else None)),
        created_at=_str_or_none(item.get("createdAt")),
        counterparty=_str_or_none(counterparty),
    )


def parse_batch_results(payload: Any, emails: Sequence[str]) -> List[TransferResult]:
    rows = _unwrap_list(payload, "responses", "data")
    results: List[TransferResult] = []
    for index, email in enumerate(emails):
        row = rows[index] if index < len(rows) and isinstance(rows[index], dict) else None
        if row is None:
            results.append(TransferResult(id=None, status="unknown", recipient=email, error="No result returned"))
            continue
        response = row.get("response") if isinstance(row.get("response"), dict) else row
        error = row.get("error")
        if isinstance(error, dict):
            error = error.get("message") or json.dumps(error)
        results.append(
            TransferResult(
                id=_str_or_none(response.get("id")),
                status=str(response.get("status") or ("failed" if error else "pending")),
                recipient=email,
                error=_str_or_none(error) if error else None,
            )
        )
    return results


class PayoutsApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        url = f"{self._base_url}{path}"
        try:
            async with self._get_session().request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
            ) as response:
                malformed = False
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                    malformed = True
                if response.status == 401 and token:
                    raise AuthExpiredError(
                        _error_message(body, response.status, response.reason),
                        status=response.status,
                        code=_error_code(body),
                    )
                if response.status >= 400:
                    message = _error_message(body, response.status, response.reason)
                    logger.info("API %s %s failed with %s: %s", method, path, response.status, message)
                    raise ApiError(message, status=response.status, code=_error_code(body))
                if malformed:
                    raise ApiError("The payments service sent an unreadable response", status=response.status)
                return body
        except asyncio.TimeoutError as exc:
            raise ApiError("The payments service did not respond in time") from exc
        except aiohttp.ClientError as exc:
            raise ApiError(f"Network error: {exc}") from exc

    async def request_otp(self, email: str) -> str:
        body = await self._request("POST", "/auth/email-otp/request", payload={"email": email})
        sid = body.get("sid") if isinstance(body, dict) else None
        if not sid:
            raise ApiError("Missing session id in OTP response")
        return str(sid)

    async def authenticate(self, email: str, otp: str, sid: str) -> AuthResult:
        body = await self._request(
            "POST",
            "/auth/email-otp/authenticate",
            payload={"email": email, "otp": otp, "sid": sid},
        )
        if not isinstance(body, dict) or not body.get("accessToken"):
            raise ApiError("Authentication response did not include an access token")
        user = _dict_or_empty(body.get("user"))
        return AuthResult(
            access_token=str(body["accessToken"]),
            refresh_token=_str_or_none(body.get("refreshToken") or body.get("accessTokenId")),
            user_id=_str_or_none(user.get("id")),
            email=_str_or_none(user.get("email") or email),
            organization_id=_str_or_none(user.get("organizationId")),
        )

    async def get_profile(self, token: str) -> Dict[str, Any]:
        body = await self._request("GET", "/auth/me", token=token)
        return body if isinstance(body, dict) else {}

    async def list_balances(self, token: str) -> List[WalletBalance]:
        return _parse_response(parse_balances, await self._request("GET", "/wallets/balances", token=token))

    async def list_wallets(self, token: str) -> List[Wallet]:
        body = await self._request("GET", "/wallets", token=token)
        return [parse_wallet(item) for item in _unwrap_list(body, "data") if isinstance(item, dict)]

    async def generate_wallet(self, token: str, network_id: str) -> Wallet:
        body = await self._request("POST", "/wallets", token=token, payload={"network": network_id})
        if not isinstance(body, dict):
            raise ApiError("Unexpected wallet response")
        return _parse_response(parse_wallet, body)

    async def set_default_wallet(self, token: str, wallet_id: str) -> None:
        await self._request("POST", "/wallets/default", token=token, payload={"walletId": wallet_id})

    async def send_email_transfer(
        self,
        token: str,
        *,
        amount: str,
        currency: str,
        receiver_email: str,
        network: Optional[str] = None,
        note: Optional[str] = None,
    ) -> TransferResult:
        payload: Dict[str, Any] = {
            "email": receiver_email,
            "amount": amount,
            "currency": currency,
            "purposeCode": PURPOSE_CODE,
        }
        if network:
            payload["network"] = network
        if note:
            payload["note"] = note
        body = await self._request("POST", "/transfers/send", token=token, payload=payload)
        body = body if isinstance(body, dict) else {}
        return TransferResult(id=_str_or_none(body.get("id")), status=str(body.get("status") or "pending"), recipient=receiver_email)

    async def send_wallet_transfer(
        self,
        token: str,
        *,
        amount: str,
        currency: str,
        receiver_address: str,
        network: str,
        note: Optional[str] = None,
    ) -> TransferResult:
        payload: Dict[str, Any] = {
            "walletAddress": receiver_address,
            "amount": amount,
            "currency": currency,
            "network": network,
            "purposeCode": PURPOSE_CODE,
        }
        if note:
            payload["note"] = note
        body = await self._request("POST", "/transfers/wallet-withdraw", token=token, payload=payload)
        body = body if isinstance(body, dict) else {}
        return TransferResult(id=_str_or_none(body.get("id")), status=str(body.get("status") or "pending"), recipient=receiver_address)

    async def send_batch(self, token: str, entries: Sequence[Dict[str, Any]]) -> List[TransferResult]:
        requests = []
        for index, entry in enumerate(entries, start=1):
            request: Dict[str, Any] = {
                "email": entry["email"],
                "amount": entry["amount"],
                "currency": entry["currency"],
                "purposeCode": PURPOSE_CODE,
            }
            if entry.get("note"):
                request["note"] = entry["note"]
            requests.append({"requestId": str(index), "request": request})
        body = await self._request("POST", "/transfers/send-batch", token=token, payload={"requests": requests})
        return _parse_response(parse_batch_results, body, [entry["email"] for entry in entries])

    async def get_kyc_status(self, token: str) -> KycStatus:
        body = await self._request("GET", "/kycs", token=token, params={"limit": 1})
        records = _unwrap_list(body, "data")
        if not records or not isinstance(records[0], dict):
            return KycStatus(status="not_submitted", is_approved=False)
        status = str(records[0].get("status") or "unknown").lower()
        return KycStatus(status=status, is_approved=status == "approved")

    async def get_bank_accounts(self, token: str) -> List[BankAccount]:
        body = await self._request("GET", "/accounts", token=token)
        accounts = []
        for item in _unwrap_list(body, "data"):
            if not isinstance(item, dict):
                continue
            if item.get("type") not in (None, "bank_account"):
                continue
            accounts.append(parse_bank_account(item))
        return accounts

    async def get_withdrawal_quote(
        self,
        token: str,
        *,
        amount: str,
        currency: str,
        bank_account_id: str,
        destination_country: Optional[str],
    ) -> WithdrawalQuote:
        payload: Dict[str, Any] = {
            "sourceCountry": "none",
            "destinationCountry": (destination_country or "none").lower(),
            "amount": amount,
            "currency": currency,
            "preferredBankAccountId": bank_account_id,
            "onlyRemittance": True,
        }
        return _parse_response(parse_quote, await self._request("POST", "/quotes/offramp", token=token, payload=payload))

    async def execute_withdrawal(
        self,
        token: str,
        *,
        quote_payload: str,
        quote_signature: str,
        purpose_code: str = PURPOSE_CODE,
    ) -> TransferResult:
        body = await self._request(
            "POST",
            "/transfers/offramp",
            token=token,
            payload={
                "quotePayload": quote_payload,
                "quoteSignature": quote_signature,
                "purposeCode": purpose_code,
            },
        )
        body = body if isinstance(body, dict) else {}
        return TransferResult(id=_str_or_none(body.get("id")), status=str(body.get("status") or "pending"))

    async def get_transfer_history(self, token: str, page: int = 1, page_size: int = 10) -> TransferPage:
        body = await self._request("GET", "/transfers", token=token, params={"page": page, "limit": page_size})
        items = [parse_transfer_record(item) for item in _unwrap_list(body, "data", "items") if isinstance(item, dict)]
        total = len(items)
        has_more = False
        if isinstance(body, dict):
            total = _int_or_default(body.get("count") or body.get("totalCount") or total, total)
            has_more = bool(body.get("hasMore", page * page_size < total))
        return TransferPage(items=items, total_count=total, has_more=has_more, page=page, page_size=page_size)
