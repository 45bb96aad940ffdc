"""
Transaction data models.

TransactionDetail is the immutable record kept in the store and returned
by the query API. SignatureInfo mirrors one entry of a signature listing.
"""

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

import base58
from pydantic import BaseModel, ConfigDict, Field

SIGNATURE_LENGTH = 64

BASE58_PATTERN = re.compile(r"[1-9A-HJ-NP-Za-km-z]+")

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def parse_signature(value: str) -> str:
    """
    Validate a transaction signature in its base58 text form.

    Args:
        value: Candidate signature string

    Returns:
        The signature string, unchanged

    Raises:
        ValueError: If the value is not base58 or does not decode to 64 bytes
    """
    if not value:
        raise ValueError("Signature is empty")
    if not BASE58_PATTERN.fullmatch(value):
        raise ValueError("Signature contains characters outside the base58 alphabet")
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise ValueError(f"Signature is not valid base58: {e}") from e
    if len(raw) != SIGNATURE_LENGTH:
        raise ValueError(
            f"Signature must decode to {SIGNATURE_LENGTH} bytes, got {len(raw)}"
        )
    return value


def is_valid_signature(value: str) -> bool:
    try:
        parse_signature(value)
    except ValueError:
        return False
    return True


class TransactionDetail(BaseModel):
    """A stored ledger transaction. Frozen once created."""

    model_config = ConfigDict(frozen=True)

    sender: str
    receiver: str
    data: str
    timestamp: int = Field(ge=INT64_MIN, le=INT64_MAX)

    def utc_date(self) -> Optional[date]:
        """Calendar date of the timestamp in UTC, or None if not representable."""
        try:
            return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None


class SignatureInfo(BaseModel):
    """One entry of a getSignaturesForAddress listing."""

    model_config = ConfigDict(frozen=True)

    signature: str
    slot: int = 0
    err: Any = None
    block_time: Optional[int] = None
    memo: Optional[str] = None
    confirmation_status: Optional[str] = None

    @classmethod
    def from_rpc_item(cls, item: Dict[str, Any]) -> "SignatureInfo":
        """Build from a single getSignaturesForAddress result item."""
        return cls(
            signature=item["signature"],
            slot=int(item.get("slot") or 0),
            err=item.get("err"),
            block_time=item.get("blockTime"),
            memo=item.get("memo"),
            confirmation_status=item.get("confirmationStatus"),
        )
