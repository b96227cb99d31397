"""
Ledger client interface - the only way the core touches the external ledger
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from friendvault.core.vaults.models import AMOUNT_QUANTUM
from friendvault.services.exceptions import LedgerError


class LedgerOutcomeUnknownError(LedgerError):
    """
    Raised when a transaction was submitted but its fate could not be observed
    (timeout, dropped connection). Funds may or may not have moved.
    """
    code = "LEDGER_OUTCOME_UNKNOWN"


@dataclass(frozen=True)
class KeyPair:
    address: str
    secret: str

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address!r}, secret='***')"


@dataclass(frozen=True)
class PaymentResult:
    hash: str


def format_amount(amount: Decimal) -> str:
    """Render an amount the way the ledger expects it (fixed point, max 7 decimals)"""
    return format(amount.quantize(AMOUNT_QUANTUM).normalize(), "f")


def idempotency_memo(idempotency_key: str) -> bytes:
    """32-byte memo hash binding a ledger transaction to its idempotency key"""
    return hashlib.sha256(idempotency_key.encode("utf-8")).digest()


class LedgerClient(ABC):
    """
    Ledger operations used by the vault core.

    Implementations raise LedgerError (or LedgerOutcomeUnknownError) on failure
    and never return a partial result.
    """

    @abstractmethod
    def generate_keypair(self) -> KeyPair:
        """Create a fresh custodial keypair (not funded)"""

    @abstractmethod
    def get_native_balance(self, address: str) -> Decimal:
        """Native balance of an account; 0 for accounts not yet created on the ledger"""

    @abstractmethod
    def get_token_balance(self, asset_ref: str, address: str) -> Decimal:
        """Balance held by address in the token contract asset_ref"""

    @abstractmethod
    def send_payment(
        self,
        source_secret: str,
        destination: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        """Native-asset payment signed with source_secret"""

    @abstractmethod
    def send_token(
        self,
        asset_ref: str,
        source_secret: str,
        destination: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        """Token transfer through the token contract asset_ref"""
