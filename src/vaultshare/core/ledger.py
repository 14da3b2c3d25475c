"""
In-process deterministic ledger.

Holds the account store, the slot clock and the hosted programs, and executes
signed transactions atomically: every account a transaction lists is
snapshotted before execution and restored if any instruction fails, so a
failed transaction leaves no trace. Transactions are serialized behind a
re-entrant lock.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

from vaultshare.core import metrics
from vaultshare.core.addresses import Address, derive_address
from vaultshare.core.constants import (
    ACCOUNT_CREATE_COST,
    ACCOUNT_LOAD_COST,
    COMPUTE_BUDGET_PROGRAM_ID,
    DEFAULT_COMPUTE_UNIT_LIMIT,
    INSTRUCTION_BASE_COST,
    LOOKUP_TABLE_WARMUP_SLOTS,
    MAX_COMPUTE_UNIT_LIMIT,
    MAX_RECENT_SLOT_AGE,
    MAX_TX_ACCOUNT_LOCKS,
    PACKET_DATA_SIZE,
    SLOT_DURATION_SECS,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from vaultshare.core.exceptions import (
    AccountAlreadyInUseError,
    AccountNotInTransactionError,
    ComputeBudgetExceededError,
    DuplicateTransactionError,
    LedgerError,
    LookupTableError,
    ProgramError,
    ReadonlyAccountModifiedError,
    StaleTransactionError,
    TooManyAccountLocksError,
    TransactionError,
    TransactionTooLargeError,
    UnknownProgramError,
    ValidationError,
    get_error_context,
)
from vaultshare.core.transaction import Instruction, Transaction

logger = logging.getLogger(__name__)


@dataclass
class Account:
    """A ledger account: owning program, native balance and program data."""

    owner: Address
    lamports: int = 0
    data: Any = None


@dataclass(frozen=True)
class Clock:
    slot: int
    unix_timestamp: int


@dataclass(frozen=True)
class Memcmp:
    """Byte-range filter over an account's packed data."""

    offset: int
    bytes: bytes

    def matches(self, raw: bytes) -> bool:
        return raw[self.offset:self.offset + len(self.bytes)] == self.bytes


@dataclass
class TransactionReceipt:
    txid: str
    slot: int
    events: List[Any] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    compute_units_consumed: int = 0


class Program(Protocol):
    program_id: Address

    def process(self, ctx: "InstructionContext") -> None:
        ...


class ComputeMeter:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.consumed = 0

    def consume(self, units: int) -> None:
        self.consumed += units
        if self.consumed > self.limit:
            raise ComputeBudgetExceededError(
                f"Compute budget exceeded: {self.consumed} > {self.limit} units",
                details={"consumed": self.consumed, "limit": self.limit},
            )


class InstructionContext:
    """Everything a program may see or touch while running one instruction.

    Only accounts the transaction listed (directly or through a lookup table)
    are reachable. Accounts are handed out live: programs mutate them in place
    and the ledger restores the snapshot if the transaction fails.
    """

    def __init__(
        self,
        ledger: "Ledger",
        instruction: Instruction,
        tx_accounts: Dict[Address, bool],
        signers: Set[Address],
        clock: Clock,
        meter: ComputeMeter,
        receipt: TransactionReceipt,
    ) -> None:
        self._ledger = ledger
        self.instruction = instruction
        self.program_id = instruction.program_id
        self._tx_accounts = tx_accounts
        self.signers = signers
        self.clock = clock
        self.meter = meter
        self._receipt = receipt

    @property
    def args(self) -> Dict[str, Any]:
        return self.instruction.args

    def _check_listed(self, address: Address) -> None:
        if address not in self._tx_accounts:
            raise AccountNotInTransactionError(
                f"Account {address} is not listed by the transaction",
                details={"address": address},
            )

    def get(self, address: Address) -> Optional[Account]:
        self._check_listed(address)
        return self._ledger._accounts.get(address)

    def exists(self, address: Address) -> bool:
        return self.get(address) is not None

    def is_writable(self, address: Address) -> bool:
        return self._tx_accounts.get(address, False)

    def is_signer(self, address: Address) -> bool:
        return address in self.signers

    def authorizes(self, authority: Address, signer_seeds: Optional[Sequence[bytes]] = None) -> bool:
        """True when ``authority`` signed, or is the calling program's derived address."""
        if authority in self.signers:
            return True
        return signer_seeds is not None and derive_address(signer_seeds, self.program_id) == authority

    def create_account(self, address: Address, owner: Address, data: Any = None, lamports: int = 0) -> Account:
        """Create an account, failing if the address is already occupied."""
        self._check_listed(address)
        if address in self._ledger._accounts:
            raise AccountAlreadyInUseError(
                f"Allocate: account {address} already in use",
                details={"address": address},
            )
        self.meter.consume(ACCOUNT_CREATE_COST)
        account = Account(owner=owner, lamports=lamports, data=data)
        self._ledger._accounts[address] = account
        return account

    def ensure_system_account(self, address: Address) -> Account:
        self._check_listed(address)
        account = self._ledger._accounts.get(address)
        if account is None:
            account = Account(owner=SYSTEM_PROGRAM_ID)
            self._ledger._accounts[address] = account
        return account

    def consume(self, units: int) -> None:
        self.meter.consume(units)

    def emit(self, event: Any) -> None:
        self._receipt.events.append(event)

    def log(self, message: str) -> None:
        self._receipt.logs.append(f"Program {self.program_id}: {message}")


class Ledger:
    """Account store, slot clock and transaction processor.

    Args:
        time_source: Callable returning wall-clock seconds
        warmup_slots: Slots a lookup table needs after its last extension
            before transactions may reference it
        slot_duration: Wall-clock seconds per slot

    The slot advances once per committed transaction and once per
    ``slot_duration`` elapsed on ``time_source`` since the ledger was created.
    """

    def __init__(
        self,
        time_source: Callable[[], float] = time.time,
        warmup_slots: int = LOOKUP_TABLE_WARMUP_SLOTS,
        slot_duration: float = SLOT_DURATION_SECS,
    ) -> None:
        if slot_duration <= 0:
            raise ValueError("slot_duration must be positive")
        from vaultshare.core.lookup_table import LookupTableProgram
        from vaultshare.core.system import SystemProgram
        from vaultshare.core.token import TokenProgram

        self._accounts: Dict[Address, Account] = {}
        self._programs: Dict[Address, Program] = {}
        self._lock = threading.RLock()
        self._time_source = time_source
        self._time_offset = 0
        self._genesis_time = time_source()
        self.slot_duration = slot_duration
        # slots produced by commits and advance_slot, on top of elapsed time
        self._slot = 0
        self.warmup_slots = warmup_slots
        # committed txid -> recent slot, kept until the slot ages out
        self._processed: Dict[str, int] = {}
        self.event_log: List[Tuple[int, Any]] = []

        for program in (SystemProgram(), TokenProgram(), LookupTableProgram()):
            self.register_program(program)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    @property
    def slot(self) -> int:
        elapsed = self._time_source() - self._genesis_time
        return self._slot + max(0, int(elapsed / self.slot_duration))

    @property
    def unix_timestamp(self) -> int:
        return int(self._time_source()) + self._time_offset

    def clock(self) -> Clock:
        return Clock(slot=self.slot, unix_timestamp=self.unix_timestamp)

    def advance_slot(self, count: int = 1) -> int:
        with self._lock:
            self._slot += count
            return self.slot

    def warp(self, seconds: int) -> None:
        """Move the ledger clock forward without touching the slot."""
        with self._lock:
            self._time_offset += seconds

    # ------------------------------------------------------------------
    # Programs and genesis helpers
    # ------------------------------------------------------------------

    def register_program(self, program: Program) -> None:
        with self._lock:
            self._programs[program.program_id] = program
            self._accounts.setdefault(program.program_id, Account(owner=SYSTEM_PROGRAM_ID))

    def airdrop(self, address: Address, lamports: int) -> None:
        with self._lock:
            account = self._accounts.setdefault(address, Account(owner=SYSTEM_PROGRAM_ID))
            account.lamports += lamports

    def create_mint(self, address: Address, decimals: int, mint_authority: Address) -> None:
        """Install a token mint at a fixed address (genesis only)."""
        from vaultshare.core.token import Mint

        with self._lock:
            if address in self._accounts:
                raise AccountAlreadyInUseError(f"Mint address {address} already in use")
            self._accounts[address] = Account(
                owner=TOKEN_PROGRAM_ID,
                data=Mint(decimals=decimals, mint_authority=mint_authority),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_account(self, address: Address) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(address)
            return copy.deepcopy(account) if account is not None else None

    def get_balance(self, address: Address) -> int:
        with self._lock:
            account = self._accounts.get(address)
            return account.lamports if account is not None else 0

    def get_token_balance(self, address: Address) -> int:
        from vaultshare.core.token import TokenAccount

        with self._lock:
            account = self._accounts.get(address)
            if account is None or not isinstance(account.data, TokenAccount):
                return 0
            return account.data.amount

    def get_program_accounts(
        self, owner: Address, filters: Iterable[Memcmp] = ()
    ) -> List[Tuple[Address, Account]]:
        """Accounts owned by ``owner`` whose packed data passes every filter."""
        filters = list(filters)
        matches: List[Tuple[Address, Account]] = []
        with self._lock:
            for address, account in self._accounts.items():
                if account.owner != owner:
                    continue
                if filters:
                    pack = getattr(account.data, "pack", None)
                    if pack is None:
                        continue
                    raw = pack()
                    if not all(f.matches(raw) for f in filters):
                        continue
                matches.append((address, copy.deepcopy(account)))
        return matches

    def get_address_lookup_table(self, address: Address):
        """Return the table once it is resolvable, otherwise None."""
        from vaultshare.core.lookup_table import AddressLookupTable

        with self._lock:
            account = self._accounts.get(address)
            if account is None or not isinstance(account.data, AddressLookupTable):
                return None
            if not account.data.is_resolvable(self.slot, self.warmup_slots):
                return None
            return copy.deepcopy(account.data)

    # ------------------------------------------------------------------
    # Transaction processing
    # ------------------------------------------------------------------

    def _resolve_lookup_tables(self, tx: Transaction) -> Dict[Address, List[Address]]:
        contents: Dict[Address, List[Address]] = {}
        for table_address in tx.lookup_tables:
            table = self.get_address_lookup_table(table_address)
            if table is None:
                raise LookupTableError(
                    f"Lookup table {table_address} is missing or not yet resolvable",
                    details={"table": table_address, "slot": self.slot},
                    recoverable=True,
                )
            contents[table_address] = list(table.addresses)
        return contents

    def _check_recent(self, tx: Transaction) -> None:
        slot = self.slot
        if not isinstance(tx.recent_slot, int) or tx.recent_slot > slot:
            raise StaleTransactionError(
                f"Recent slot {tx.recent_slot!r} is not a known slot",
                details={"recent_slot": tx.recent_slot, "slot": slot},
            )
        if slot - tx.recent_slot > MAX_RECENT_SLOT_AGE:
            raise StaleTransactionError(
                f"Transaction {tx.txid[:10]}... expired: recent slot {tx.recent_slot} is "
                f"{slot - tx.recent_slot} slots old",
                details={"recent_slot": tx.recent_slot, "slot": slot},
            )
        if tx.txid in self._processed:
            logger.warning(
                "Duplicate transaction rejected",
                extra={"event": "ledger.tx_duplicate", "txid": tx.txid},
            )
            raise DuplicateTransactionError(
                f"Transaction {tx.txid[:10]}... was already processed",
                details={"txid": tx.txid},
            )

    def _remember(self, txid: str, recent_slot: int) -> None:
        self._processed[txid] = recent_slot
        horizon = self.slot - MAX_RECENT_SLOT_AGE
        for old in [t for t, s in self._processed.items() if s < horizon]:
            del self._processed[old]

    def _compute_limit(self, tx: Transaction) -> int:
        limit = DEFAULT_COMPUTE_UNIT_LIMIT
        for ix in tx.instructions:
            if ix.program_id == COMPUTE_BUDGET_PROGRAM_ID and ix.name == "set_compute_unit_limit":
                units = ix.args.get("units")
                if not isinstance(units, int) or not 0 < units <= MAX_COMPUTE_UNIT_LIMIT:
                    raise ValidationError(f"Invalid compute unit limit: {units!r}")
                limit = units
        return limit

    def _restore(self, snapshot: Dict[Address, Optional[Account]]) -> None:
        for address, account in snapshot.items():
            if account is None:
                self._accounts.pop(address, None)
            else:
                self._accounts[address] = account

    def process_transaction(self, tx: Transaction) -> TransactionReceipt:
        """Verify and execute ``tx`` atomically.

        Raises:
            ValidationError: Signature, size, account-lock or budget problems
                found before execution
            DuplicateTransactionError: The same transaction was already committed
            StaleTransactionError: The recent slot is unknown or too old
            LookupTableError: A referenced lookup table is not resolvable
            TransactionError: An instruction failed; nothing was committed
        """
        with self._lock:
            tx.verify_signatures()
            self._check_recent(tx)
            table_contents = self._resolve_lookup_tables(tx)

            size = tx.serialized_size(table_contents)
            if size > PACKET_DATA_SIZE:
                raise TransactionTooLargeError(
                    f"Transaction too large: {size} > {PACKET_DATA_SIZE} bytes",
                    size=size,
                    limit=PACKET_DATA_SIZE,
                )
            compiled = tx.compile_accounts(table_contents)
            if compiled.total > MAX_TX_ACCOUNT_LOCKS:
                raise TooManyAccountLocksError(
                    f"Transaction locks {compiled.total} accounts, limit is {MAX_TX_ACCOUNT_LOCKS}"
                )

            meter = ComputeMeter(self._compute_limit(tx))
            signers = set(tx.signatures)
            clock = self.clock()
            receipt = TransactionReceipt(txid=tx.txid, slot=clock.slot)
            snapshot = {
                address: copy.deepcopy(self._accounts.get(address))
                for address in compiled.writable
            }

            index: Optional[int] = None
            try:
                for index, ix in enumerate(tx.instructions):
                    if ix.program_id == COMPUTE_BUDGET_PROGRAM_ID:
                        continue
                    program = self._programs.get(ix.program_id)
                    if program is None:
                        raise UnknownProgramError(f"Program {ix.program_id} is not deployed")
                    meter.consume(INSTRUCTION_BASE_COST + ACCOUNT_LOAD_COST * len(ix.accounts))
                    ctx = InstructionContext(
                        self, ix, compiled.writable, signers, clock, meter, receipt
                    )
                    program.process(ctx)
                index = None
                self._check_readonly(compiled.writable, snapshot)
            except LedgerError as exc:
                self._restore(snapshot)
                metrics.record_transaction("failed")
                if isinstance(exc, ProgramError):
                    metrics.record_program_error(exc.code_name)
                logger.warning(
                    "Transaction failed",
                    extra={
                        "event": "ledger.tx_failed",
                        "txid": receipt.txid,
                        "instruction_index": index,
                        **get_error_context(exc),
                    },
                )
                raise TransactionError(
                    f"Transaction {receipt.txid[:10]}... failed: {exc}",
                    cause=exc,
                    instruction_index=index,
                ) from exc
            except Exception:
                self._restore(snapshot)
                metrics.record_transaction("failed")
                raise

            receipt.compute_units_consumed = meter.consumed
            self.event_log.extend((clock.slot, event) for event in receipt.events)
            self._remember(receipt.txid, tx.recent_slot)
            self._slot += 1
            metrics.record_transaction("committed")
            logger.debug(
                "Transaction committed",
                extra={
                    "event": "ledger.tx_committed",
                    "txid": receipt.txid,
                    "slot": clock.slot,
                    "compute_units": meter.consumed,
                },
            )
            return receipt

    def _check_readonly(
        self, writable: Dict[Address, bool], snapshot: Dict[Address, Optional[Account]]
    ) -> None:
        for address, is_writable in writable.items():
            if not is_writable and self._accounts.get(address) != snapshot[address]:
                raise ReadonlyAccountModifiedError(
                    f"Read-only account {address} was modified",
                    details={"address": address},
                )
