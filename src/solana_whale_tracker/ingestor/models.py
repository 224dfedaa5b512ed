"""Data models for the ingestor module."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from solana_whale_tracker.exceptions import ClassificationSkip, SourceUnavailable

TransferType = Literal["buy", "sell", "transfer"]


def _parse_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ClassificationSkip(f"invalid amount: {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ClassificationSkip(f"invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ClassificationSkip(f"invalid amount: {value!r}")
    return result


def _entries(value: Any) -> tuple[Any, ...]:
    # Entries are validated one by one when classified.
    return tuple(value) if isinstance(value, list) else ()


@dataclass(frozen=True)
class HolderAccount:
    """A token account owner and its UI-unit balance."""

    owner: str
    balance: Decimal

    @classmethod
    def from_program_account(cls, data: dict[str, Any]) -> "HolderAccount | None":
        """Build from a jsonParsed ``getProgramAccounts`` entry.

        Returns None when the account carries no parsed token data.
        """
        account = data.get("account")
        raw_data = account.get("data") if isinstance(account, dict) else None
        # base64-encoded accounts come back as a [data, encoding] list
        parsed = raw_data.get("parsed") if isinstance(raw_data, dict) else None
        info = parsed.get("info") if isinstance(parsed, dict) else None
        if not isinstance(info, dict):
            return None
        owner = info.get("owner")
        token_amount = info.get("tokenAmount")
        if not isinstance(token_amount, dict):
            return None
        raw = token_amount.get("uiAmountString", token_amount.get("uiAmount"))
        if not owner or raw is None:
            return None
        try:
            balance = _parse_decimal(raw)
        except ClassificationSkip:
            return None
        return cls(owner=str(owner), balance=balance)


@dataclass(frozen=True)
class TokenBalance:
    """A single pre/post token balance entry from transaction metadata."""

    account_index: int
    mint: str
    owner: str | None
    ui_amount: Decimal

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TokenBalance":
        """Parse an RPC ``preTokenBalances``/``postTokenBalances`` entry.

        Raises:
            ClassificationSkip: If the entry is missing required fields or
                carries an unparseable amount.
        """
        if not isinstance(data, dict):
            raise ClassificationSkip("token balance entry is not an object")
        index = data.get("accountIndex")
        mint = data.get("mint")
        if not isinstance(index, int) or isinstance(index, bool) or not mint:
            raise ClassificationSkip(f"malformed token balance entry: {data!r}")
        ui = data.get("uiTokenAmount")
        if not isinstance(ui, dict):
            raise ClassificationSkip(f"malformed uiTokenAmount: {ui!r}")
        raw = ui.get("uiAmountString", ui.get("uiAmount"))
        owner = data.get("owner")
        return cls(
            account_index=index,
            mint=str(mint),
            owner=str(owner) if owner else None,
            ui_amount=_parse_decimal(raw),
        )


@dataclass(frozen=True)
class ParsedTransaction:
    """The subset of a confirmed transaction the tracker cares about."""

    signature: str
    slot: int | None
    block_time: datetime
    fee: int | None = None
    success: bool = True
    compute_units_consumed: int | None = None
    pre_token_balances: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    post_token_balances: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_rpc(cls, signature: str, result: dict[str, Any]) -> "ParsedTransaction | None":
        """Build from a ``getTransaction`` (jsonParsed) result.

        Returns None when the payload lacks ``blockTime``.

        Raises:
            SourceUnavailable: If the payload is not a JSON object.
            ClassificationSkip: If ``blockTime`` or ``meta`` is malformed.
        """
        if not isinstance(result, dict):
            raise SourceUnavailable(f"unexpected getTransaction payload for {signature}")
        block_time = result.get("blockTime")
        if block_time is None:
            return None
        try:
            timestamp = datetime.fromtimestamp(int(block_time), tz=UTC)
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise ClassificationSkip(f"invalid blockTime for {signature}: {block_time!r}") from e
        meta = result.get("meta") or {}
        if not isinstance(meta, dict):
            raise ClassificationSkip(f"malformed meta for {signature}")
        return cls(
            signature=signature,
            slot=result.get("slot"),
            block_time=timestamp,
            fee=meta.get("fee"),
            success=meta.get("err") is None,
            compute_units_consumed=meta.get("computeUnitsConsumed"),
            pre_token_balances=_entries(meta.get("preTokenBalances")),
            post_token_balances=_entries(meta.get("postTokenBalances")),
        )

    def metadata(self) -> dict[str, Any]:
        """JSON-safe metadata stored alongside the transaction record."""
        return {
            "fee": self.fee,
            "success": self.success,
            "compute_units_consumed": self.compute_units_consumed,
        }


@dataclass(frozen=True)
class ClassifiedTransfer:
    """A net token balance change attributed to one account."""

    type: TransferType
    amount: Decimal
    account_index: int
    counterparty: str | None = None
