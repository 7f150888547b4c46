"""
Ledger Module
In-process host ledger: accounts, atomic transactions, the native ed25519
primitive and the system transfer primitive
"""

import logging
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, TypeVar

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from ..config import config
from ..models.instruction import Instruction, Transaction
from ..models.keypair import SIGNATURE_LENGTH
from ..models.pubkey import PUBKEY_LENGTH, Pubkey, create_program_address
from ..utils.lamports import format_lamports
from .envelope import (
    CURRENT_INSTRUCTION,
    ED25519_PROGRAM_ID,
    ByteReader,
    InstructionsView,
    read_offsets,
)
from .errors import MalformedPayload
from .settlement import checked_add, checked_sub

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM_ID = Pubkey.default()
MAX_TRANSACTION_LOG_SIZE = 1000

T = TypeVar("T")


# ========================================================================
# LEDGER ERRORS
# ========================================================================


class LedgerError(Exception):
    """Raised by ledger primitives; aborts the enclosing transaction"""


class InsufficientFunds(LedgerError):
    pass


class MissingSignature(LedgerError):
    pass


class InvalidSigningSeeds(LedgerError):
    pass


class AccountAlreadyExists(LedgerError):
    pass


class AccountNotFound(LedgerError):
    pass


class PrecompileVerificationFailed(LedgerError):
    pass


# ========================================================================
# ACCOUNTS
# ========================================================================


@dataclass(frozen=True)
class Account:
    """Ledger account: balance, owning program and opaque data"""

    lamports: int
    owner: Pubkey = SYSTEM_PROGRAM_ID
    data: bytes = b""


def rent_exempt_minimum(space: int) -> int:
    """Lamports an account of `space` data bytes must hold to stay alive"""
    rules = config.LEDGER
    return (
        (rules["account_storage_overhead"] + space)
        * rules["lamports_per_byte_year"]
        * rules["exemption_threshold_years"]
    )


# ========================================================================
# NATIVE ED25519 PRIMITIVE
# ========================================================================


def _instruction_data(instructions: list[Instruction], own: Instruction, index: int) -> ByteReader:
    if index == CURRENT_INSTRUCTION:
        return ByteReader(own.data)
    if index >= len(instructions):
        raise MalformedPayload(f"Offsets reference missing instruction {index}")
    return ByteReader(instructions[index].data)


def run_ed25519_primitive(instructions: list[Instruction], instruction: Instruction):
    """
    Cryptographically verify every signature record in one primitive call

    Raises:
        PrecompileVerificationFailed: On a malformed payload or a bad signature
    """
    try:
        reader = ByteReader(instruction.data)
        records = read_offsets(reader)
        if not records:
            raise MalformedPayload("No signature records")

        for record in records:
            signature = _instruction_data(
                instructions, instruction, record.signature_instruction_index
            ).slice(record.signature_offset, SIGNATURE_LENGTH)
            public_key = _instruction_data(
                instructions, instruction, record.public_key_instruction_index
            ).slice(record.public_key_offset, PUBKEY_LENGTH)
            message = _instruction_data(
                instructions, instruction, record.message_instruction_index
            ).slice(record.message_offset, record.message_size)

            VerifyKey(public_key).verify(message, signature)

    except MalformedPayload as e:
        raise PrecompileVerificationFailed(f"Malformed ed25519 instruction: {e.message}")
    except BadSignatureError:
        raise PrecompileVerificationFailed("ed25519 signature verification failed")


# ========================================================================
# TRANSACTION CONTEXT
# ========================================================================


class TransactionContext:
    """
    Handle a program uses to read and mutate the ledger inside one
    transaction. Every mutation is undone if the transaction fails.
    """

    def __init__(self, ledger: "Ledger", transaction: Transaction, program_id: Pubkey):
        self._ledger = ledger
        self.program_id = program_id
        self.instructions = InstructionsView(transaction.instructions)
        self.signers = transaction.signers
        self.slot = ledger.slot

    def load_instruction_at(self, index: int) -> Instruction:
        return self.instructions.load_instruction_at(index)

    def is_signer(self, pubkey: Pubkey) -> bool:
        return pubkey in self.signers

    def get_account(self, pubkey: Pubkey) -> Account | None:
        return self._ledger._accounts.get(pubkey)

    def balance(self, pubkey: Pubkey) -> int:
        account = self.get_account(pubkey)
        return account.lamports if account else 0

    def create_account(self, address: Pubkey, payer: Pubkey, data: bytes, space: int | None = None) -> int:
        """
        Create a program-owned account funded by payer's storage deposit

        Returns:
            Lamports deposited into the new account
        """
        if address in self._ledger._accounts:
            raise AccountAlreadyExists(f"Account {address} already in use")
        if not self.is_signer(payer):
            raise MissingSignature(f"Payer {payer} did not sign")

        deposit = rent_exempt_minimum(len(data) if space is None else space)
        self._debit(payer, deposit)
        self._ledger._accounts[address] = Account(
            lamports=deposit, owner=self.program_id, data=bytes(data)
        )
        self._ledger._record("create_account", address, deposit, payer=str(payer))
        return deposit

    def take_account(self, address: Pubkey) -> Account:
        """
        Remove a program-owned account and hand it to the caller in one step

        The lamports it held must then be credited somewhere via close_to().
        """
        account = self._ledger._accounts.get(address)
        if account is None or account.owner != self.program_id:
            raise AccountNotFound(f"No account {address} owned by {self.program_id}")
        del self._ledger._accounts[address]
        return account

    def close_to(self, account: Account, address: Pubkey, destination: Pubkey) -> int:
        """Credit a taken account's lamports to destination"""
        self._credit(destination, account.lamports)
        self._ledger._record("close_account", address, account.lamports, destination=str(destination))
        return account.lamports

    def transfer(
        self,
        source: Pubkey,
        destination: Pubkey,
        lamports: int,
        signer_seeds: list[bytes] | None = None,
    ):
        """
        System transfer primitive

        The source must either have signed the transaction or be the program
        address derived from signer_seeds under the executing program.
        """
        if not isinstance(lamports, int) or lamports < 0:
            raise LedgerError(f"Transfer amount must be non-negative lamports, got {lamports!r}")

        if signer_seeds is not None:
            try:
                derived = create_program_address(signer_seeds, self.program_id)
            except ValueError as e:
                raise InvalidSigningSeeds(str(e))
            if derived != source:
                raise InvalidSigningSeeds(f"Seeds derive {derived}, not {source}")
        elif not self.is_signer(source):
            raise MissingSignature(f"Transfer source {source} did not sign")

        account = self.get_account(source)
        if account is not None and account.owner != SYSTEM_PROGRAM_ID:
            raise LedgerError(f"Transfer source {source} is not a system account")

        self._debit(source, lamports)
        self._credit(destination, lamports)
        self._ledger._record(
            "transfer", source, lamports, destination=str(destination)
        )

    def _debit(self, pubkey: Pubkey, lamports: int):
        account = self.get_account(pubkey)
        have = account.lamports if account else 0
        if lamports > have:
            raise InsufficientFunds(
                f"{pubkey} has {format_lamports(have)}, needs {format_lamports(lamports)}"
            )
        if account is None:
            return
        self._ledger._accounts[pubkey] = replace(account, lamports=checked_sub(have, lamports))

    def _credit(self, pubkey: Pubkey, lamports: int):
        account = self.get_account(pubkey) or Account(lamports=0)
        self._ledger._accounts[pubkey] = replace(
            account, lamports=checked_add(account.lamports, lamports)
        )


# ========================================================================
# LEDGER
# ========================================================================


class Ledger:
    """
    Shared ledger state with serialized, all-or-nothing transactions

    One re-entrant lock serializes transactions, so two transactions racing
    for the same account observe it one after the other.
    """

    def __init__(self, slot: int = 0):
        self._accounts: dict[Pubkey, Account] = {}
        self._slot = slot
        self._lock = threading.RLock()
        self._pending: list[dict] | None = None
        self._transaction_log: deque[dict] = deque(maxlen=MAX_TRANSACTION_LOG_SIZE)
        self._stats = {
            "transactions_committed": 0,
            "transactions_reverted": 0,
        }
        logger.info(f"Ledger initialized at slot {slot}")

    # ========== State Access Methods ==========

    @property
    def slot(self) -> int:
        with self._lock:
            return self._slot

    def advance_slot(self, slots: int = 1) -> int:
        with self._lock:
            self._slot += slots
            return self._slot

    def get_account(self, pubkey: Pubkey) -> Account | None:
        with self._lock:
            return self._accounts.get(pubkey)

    def get_balance(self, pubkey: Pubkey) -> int:
        with self._lock:
            account = self._accounts.get(pubkey)
            return account.lamports if account else 0

    def airdrop(self, pubkey: Pubkey, lamports: int):
        """Mint lamports into a system account (test and bootstrap helper)"""
        with self._lock:
            account = self._accounts.get(pubkey) or Account(lamports=0)
            self._accounts[pubkey] = replace(
                account, lamports=checked_add(account.lamports, lamports)
            )
            logger.debug(f"Airdropped {format_lamports(lamports)} to {pubkey}")

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            return self._stats.copy()

    def get_transaction_log(self, limit: int | None = None) -> list[dict]:
        with self._lock:
            log_list = list(self._transaction_log)
            if limit:
                return log_list[-limit:]
            return log_list

    # ========== Execution ==========

    def execute(
        self,
        transaction: Transaction,
        program_id: Pubkey,
        handler: Callable[[TransactionContext], T],
    ) -> T:
        """
        Run a transaction atomically

        Verifies transaction signatures, runs the ed25519 primitive over every
        instruction addressed to it, then calls handler. If anything raises,
        the ledger is restored to its state before the call and the error
        propagates unchanged.
        """
        with self._lock:
            self._verify_transaction_signatures(transaction)

            snapshot = dict(self._accounts)
            self._pending = []
            try:
                for instruction in transaction.instructions:
                    if instruction.program_id == ED25519_PROGRAM_ID:
                        run_ed25519_primitive(transaction.instructions, instruction)

                result = handler(TransactionContext(self, transaction, program_id))
            except Exception:
                self._accounts = snapshot
                self._pending = None
                self._stats["transactions_reverted"] += 1
                raise

            self._transaction_log.extend(self._pending)
            self._pending = None
            self._stats["transactions_committed"] += 1
            return result

    def _verify_transaction_signatures(self, transaction: Transaction):
        message = transaction.message_bytes()
        for pubkey, signature in transaction.signatures.items():
            try:
                VerifyKey(pubkey.to_bytes()).verify(message, signature)
            except BadSignatureError:
                raise MissingSignature(f"Invalid transaction signature for {pubkey}")

    def _record(self, kind: str, account: Pubkey, lamports: int, **extra):
        self._pending.append(
            {
                "timestamp": datetime.now(),
                "slot": self._slot,
                "type": kind,
                "account": str(account),
                "lamports": lamports,
                **extra,
            }
        )
