"""
Test helpers - identities and an in-memory LedgerClient double
"""

import threading
from decimal import Decimal
from typing import Dict, List, Optional

from friendvault.services.exceptions import LedgerError
from friendvault.services.deposit_service import DepositRecorder
from friendvault.services.execution_engine import ExecutionEngine
from friendvault.services.identity import DatabaseIdentityChecker
from friendvault.services.ledger.client import KeyPair, LedgerClient, PaymentResult
from friendvault.services.secret_store import SecretStore
from friendvault.services.vault_registry import VaultRegistry
from friendvault.services.voting_engine import VotingEngine
from friendvault.services.withdrawal_service import WithdrawalRequestManager

ANA = "ana@example.com"
BEN = "ben@example.com"
CHLOE = "chloe@example.com"
MALLORY = "mallory@example.com"
RECIPIENT = "GCFXHS4GXL6BVUCXBWXGTITROWLVYXQKQLF4YH5O5JT3YZXCYPAFBJZB"


class InMemoryLedger(LedgerClient):
    """
    LedgerClient double: balances in a dict, every payment recorded.

    Thread-safe so concurrency tests can count payments exactly.
    Failures are injected by setting fail_next_payment / fail_balance_reads
    to an exception instance.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counter = 0
        self.balances: Dict[str, Decimal] = {}
        self.token_balances: Dict[tuple, Decimal] = {}
        self.secrets: Dict[str, str] = {}
        self.payments: List[dict] = []
        self.fail_next_payment: Optional[Exception] = None
        self.fail_balance_reads: Optional[Exception] = None

    def _next_id(self) -> int:
        self._counter += 1
        return self._counter

    def generate_keypair(self) -> KeyPair:
        with self._lock:
            n = self._next_id()
        address = f"GVAULT{n:050d}"
        secret = f"SSECRET{n:049d}"
        self.secrets[secret] = address
        return KeyPair(address=address, secret=secret)

    def fund(self, address: str, amount) -> None:
        with self._lock:
            self.balances[address] = self.balances.get(address, Decimal("0")) + Decimal(str(amount))

    def get_native_balance(self, address: str) -> Decimal:
        if self.fail_balance_reads is not None:
            raise self.fail_balance_reads
        return self.balances.get(address, Decimal("0"))

    def get_token_balance(self, asset_ref: str, address: str) -> Decimal:
        if self.fail_balance_reads is not None:
            raise self.fail_balance_reads
        return self.token_balances.get((asset_ref, address), Decimal("0"))

    def _transfer(self, kind, source_secret, destination, amount, asset_ref, idempotency_key) -> PaymentResult:
        with self._lock:
            if self.fail_next_payment is not None:
                error, self.fail_next_payment = self.fail_next_payment, None
                raise error
            source = self.secrets.get(source_secret)
            if source is None:
                raise LedgerError("Unknown source secret")
            tx_hash = f"tx{self._next_id():062d}"
            if kind == "native":
                self.balances[source] = self.balances.get(source, Decimal("0")) - amount
                self.balances[destination] = self.balances.get(destination, Decimal("0")) + amount
            self.payments.append(
                {
                    "kind": kind,
                    "source": source,
                    "destination": destination,
                    "amount": amount,
                    "asset_ref": asset_ref,
                    "idempotency_key": idempotency_key,
                    "hash": tx_hash,
                }
            )
            return PaymentResult(hash=tx_hash)

    def send_payment(self, source_secret, destination, amount, idempotency_key=None) -> PaymentResult:
        return self._transfer("native", source_secret, destination, amount, "XLM", idempotency_key)

    def send_token(self, asset_ref, source_secret, destination, amount, idempotency_key=None) -> PaymentResult:
        return self._transfer("token", source_secret, destination, amount, asset_ref, idempotency_key)

    def register_account(self, balance="0") -> str:
        """Create a member-owned account; returns its secret"""
        keypair = self.generate_keypair()
        self.fund(keypair.address, balance)
        return keypair.secret


def build_services(db, ledger: LedgerClient) -> dict:
    """Wire the services the way the API dependencies do"""
    secret_store = SecretStore(db)
    registry = VaultRegistry(db, DatabaseIdentityChecker(db), ledger, secret_store)
    return {
        "registry": registry,
        "withdrawals": WithdrawalRequestManager(db, registry, ledger),
        "voting": VotingEngine(db),
        "execution": ExecutionEngine(db, ledger, secret_store),
        "deposits": DepositRecorder(db, registry, ledger),
        "secret_store": secret_store,
    }
