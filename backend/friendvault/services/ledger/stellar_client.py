"""
Stellar ledger client - Horizon for native payments, Soroban RPC for token contracts
"""

import logging
import time
from decimal import Decimal
from typing import Optional

from stellar_sdk import Asset, Keypair, Server, SorobanServer, TransactionBuilder, scval, xdr as stellar_xdr
from stellar_sdk.exceptions import (
    BaseHorizonError,
    ConnectionError as StellarConnectionError,
    NotFoundError as StellarNotFoundError,
    SdkError,
)
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from friendvault.infrastructure.settings import Settings, get_settings
from friendvault.services.exceptions import LedgerError
from friendvault.services.ledger.client import (
    KeyPair,
    LedgerClient,
    LedgerOutcomeUnknownError,
    PaymentResult,
    format_amount,
    idempotency_memo,
)

logger = logging.getLogger(__name__)

# Horizon answers 504 when a submitted transaction is still in flight
_AMBIGUOUS_HORIZON_STATUSES = {504}
_SOROBAN_POLL_INTERVAL_SECONDS = 1.0
# Keep polling past the transaction's time bound so NOT_FOUND becomes final
_SOROBAN_POLL_MARGIN_SECONDS = 15


class StellarLedgerClient(LedgerClient):
    """LedgerClient backed by stellar-sdk (sync Horizon + Soroban RPC clients)"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._server: Optional[Server] = None
        self._soroban: Optional[SorobanServer] = None

    @property
    def server(self) -> Server:
        """Lazy initialization of the Horizon client"""
        if self._server is None:
            self._server = Server(horizon_url=self.settings.STELLAR_HORIZON_URL)
        return self._server

    @property
    def soroban(self) -> SorobanServer:
        """Lazy initialization of the Soroban RPC client"""
        if self._soroban is None:
            self._soroban = SorobanServer(self.settings.SOROBAN_RPC_URL)
        return self._soroban

    def generate_keypair(self) -> KeyPair:
        keypair = Keypair.random()
        return KeyPair(address=keypair.public_key, secret=keypair.secret)

    def get_native_balance(self, address: str) -> Decimal:
        try:
            account = self.server.accounts().account_id(address).call()
        except StellarNotFoundError:
            # Not created on the ledger yet (never funded)
            return Decimal("0")
        except SdkError as e:
            raise LedgerError(f"Failed to load account {address}: {e}") from e

        for balance in account.get("balances", []):
            if balance.get("asset_type") == "native":
                return Decimal(balance["balance"])
        return Decimal("0")

    def get_token_balance(self, asset_ref: str, address: str) -> Decimal:
        try:
            source = self.soroban.load_account(address)
            tx = (
                TransactionBuilder(
                    source_account=source,
                    network_passphrase=self.settings.stellar_network_passphrase,
                    base_fee=100,
                )
                .append_invoke_contract_function_op(
                    contract_id=asset_ref,
                    function_name="balance",
                    parameters=[scval.to_address(address)],
                )
                .set_timeout(self.settings.LEDGER_TIMEOUT_SECONDS)
                .build()
            )
            simulation = self.soroban.simulate_transaction(tx)
        except (SdkError, ValueError) as e:
            raise LedgerError(f"Failed to read balance of {address} in token {asset_ref}: {e}") from e

        if simulation.error or not simulation.results:
            raise LedgerError(
                f"Token balance simulation failed for {asset_ref}",
                details={"asset_ref": asset_ref, "error": simulation.error},
            )

        units = scval.from_int128(stellar_xdr.SCVal.from_xdr(simulation.results[0].xdr))
        return Decimal(units).scaleb(-self.settings.TOKEN_DECIMALS)

    def send_payment(
        self,
        source_secret: str,
        destination: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        try:
            source_keypair = Keypair.from_secret(source_secret)
            source_account = self.server.load_account(source_keypair.public_key)

            builder = (
                TransactionBuilder(
                    source_account=source_account,
                    network_passphrase=self.settings.stellar_network_passphrase,
                    base_fee=self.server.fetch_base_fee(),
                )
                .append_payment_op(
                    destination=destination,
                    asset=Asset.native(),
                    amount=format_amount(amount),
                )
                .set_timeout(self.settings.LEDGER_TIMEOUT_SECONDS)
            )
            if idempotency_key:
                builder.add_hash_memo(idempotency_memo(idempotency_key))

            transaction = builder.build()
            transaction.sign(source_keypair)
        except (SdkError, ValueError) as e:
            # Nothing was submitted
            raise LedgerError(f"Failed to build payment: {e}") from e

        try:
            response = self.server.submit_transaction(transaction)
        except StellarConnectionError as e:
            raise LedgerOutcomeUnknownError(
                f"Connection lost while submitting payment: {e}",
                details={"idempotency_key": idempotency_key},
            ) from e
        except BaseHorizonError as e:
            if e.status in _AMBIGUOUS_HORIZON_STATUSES:
                raise LedgerOutcomeUnknownError(
                    f"Horizon timed out while submitting payment: {e}",
                    details={"idempotency_key": idempotency_key},
                ) from e
            raise LedgerError(
                f"Payment rejected by the ledger: {e.title or e.detail or e}",
                details={"result_codes": (e.extras or {}).get("result_codes")},
            ) from e
        except SdkError as e:
            raise LedgerError(f"Payment submission failed: {e}") from e

        logger.info(
            f"Submitted native payment: hash={response['hash']}",
            extra={"destination": destination, "amount": format_amount(amount)},
        )
        return PaymentResult(hash=response["hash"])

    def send_token(
        self,
        asset_ref: str,
        source_secret: str,
        destination: str,
        amount: Decimal,
        idempotency_key: Optional[str] = None,
    ) -> PaymentResult:
        # Soroban transactions carry no memo; idempotency relies on the caller's gate
        try:
            source_keypair = Keypair.from_secret(source_secret)
            source_account = self.soroban.load_account(source_keypair.public_key)
            units = int((amount.scaleb(self.settings.TOKEN_DECIMALS)).to_integral_exact())

            transaction = (
                TransactionBuilder(
                    source_account=source_account,
                    network_passphrase=self.settings.stellar_network_passphrase,
                    base_fee=100,
                )
                .append_invoke_contract_function_op(
                    contract_id=asset_ref,
                    function_name="transfer",
                    parameters=[
                        scval.to_address(source_keypair.public_key),
                        scval.to_address(destination),
                        scval.to_int128(units),
                    ],
                )
                .set_timeout(self.settings.LEDGER_TIMEOUT_SECONDS)
                .build()
            )
            transaction = self.soroban.prepare_transaction(transaction)
            transaction.sign(source_keypair)
        except (SdkError, ValueError) as e:
            raise LedgerError(f"Failed to build token transfer for {asset_ref}: {e}") from e

        try:
            sent = self.soroban.send_transaction(transaction)
        except SdkError as e:
            raise LedgerOutcomeUnknownError(
                f"Token transfer submission did not complete: {e}",
                details={"idempotency_key": idempotency_key, "asset_ref": asset_ref},
            ) from e

        if sent.status == SendTransactionStatus.ERROR:
            raise LedgerError(
                f"Token transfer rejected by the ledger for {asset_ref}",
                details={"asset_ref": asset_ref, "error_result": sent.error_result_xdr},
            )

        self._wait_for_soroban_transaction(sent.hash, idempotency_key)
        logger.info(
            f"Submitted token transfer: hash={sent.hash}",
            extra={"asset_ref": asset_ref, "destination": destination, "amount": format_amount(amount)},
        )
        return PaymentResult(hash=sent.hash)

    def _wait_for_soroban_transaction(self, tx_hash: str, idempotency_key: Optional[str]) -> None:
        """Poll Soroban RPC until the transaction lands, fails, or provably expired"""
        deadline = time.monotonic() + self.settings.LEDGER_TIMEOUT_SECONDS + _SOROBAN_POLL_MARGIN_SECONDS
        last_status = None
        while time.monotonic() < deadline:
            try:
                result = self.soroban.get_transaction(tx_hash)
            except SdkError as e:
                logger.warning(f"Soroban get_transaction failed, retrying: {e}", extra={"tx_hash": tx_hash})
                last_status = None
                time.sleep(_SOROBAN_POLL_INTERVAL_SECONDS)
                continue

            last_status = result.status
            if result.status == GetTransactionStatus.SUCCESS:
                return
            if result.status == GetTransactionStatus.FAILED:
                raise LedgerError(
                    "Token transfer failed on the ledger",
                    details={"tx_hash": tx_hash, "result": result.result_xdr},
                )
            time.sleep(_SOROBAN_POLL_INTERVAL_SECONDS)

        if last_status == GetTransactionStatus.NOT_FOUND:
            # Past its time bound and still unknown to the network: it can no longer apply
            raise LedgerError(
                "Token transfer expired without being applied",
                details={"tx_hash": tx_hash},
            )
        raise LedgerOutcomeUnknownError(
            "Token transfer was not observed on the ledger before the deadline",
            details={"tx_hash": tx_hash, "idempotency_key": idempotency_key},
        )


def create_ledger_client(settings: Optional[Settings] = None) -> LedgerClient:
    """Create the configured ledger client"""
    return StellarLedgerClient(settings)
