"""
Signed ledger transactions.

A transaction is an ordered list of instructions plus the signatures of every
account flagged as a signer. The signed message is canonical JSON so every
node hashes identical bytes. Size accounting follows the compact wire layout
so the packet ceiling and lookup-table savings behave like the real network.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from vaultshare.core.addresses import Address, address_from_public_key, is_valid_address
from vaultshare.core.constants import (
    ADDRESS_SIZE,
    COMPUTE_BUDGET_PROGRAM_ID,
    SIGNATURE_SIZE,
)
from vaultshare.core.crypto_utils import verify_signature_hex
from vaultshare.core.exceptions import SignatureError
from vaultshare.core.keys import Keypair

logger = logging.getLogger(__name__)


def canonical_json(data: Dict[str, Any]) -> str:
    """Deterministic JSON for signing and hashing.

    Bytes values are rendered as hex so instruction arguments such as fixed
    identifiers serialize the same way everywhere.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=_json_default,
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def compact_u16_size(value: int) -> int:
    if value < 0x80:
        return 1
    if value < 0x4000:
        return 2
    return 3


def encoded_size(value: Any) -> int:
    """Approximate binary-encoded size of an instruction argument."""
    if value is None or isinstance(value, bool):
        return 1
    if isinstance(value, int):
        return 8
    if isinstance(value, (bytes, bytearray)):
        return len(value)
    if isinstance(value, str):
        return ADDRESS_SIZE if is_valid_address(value) else 4 + len(value.encode("utf-8"))
    if isinstance(value, (list, tuple)):
        if value and all(type(item) is int and 0 <= item <= 0xFF for item in value):
            # small-int arrays pack as u8
            return 4 + len(value)
        return 4 + sum(encoded_size(item) for item in value)
    if isinstance(value, dict):
        return sum(encoded_size(item) for item in value.values())
    raise TypeError(f"Cannot size argument of type {type(value).__name__}")


@dataclass(frozen=True)
class AccountMeta:
    address: Address
    is_signer: bool = False
    is_writable: bool = False


@dataclass
class Instruction:
    """One program invocation inside a transaction."""

    program_id: Address
    name: str
    accounts: List[AccountMeta] = field(default_factory=list)
    args: Dict[str, Any] = field(default_factory=dict)

    def data_size(self) -> int:
        # 8-byte instruction discriminator followed by the encoded arguments
        return 8 + encoded_size(self.args)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "name": self.name,
            "accounts": [[m.address, m.is_signer, m.is_writable] for m in self.accounts],
            "args": self.args,
        }


def set_compute_unit_limit(units: int) -> Instruction:
    """Compute-budget request raising the per-transaction unit ceiling."""
    return Instruction(COMPUTE_BUDGET_PROGRAM_ID, "set_compute_unit_limit", [], {"units": units})


@dataclass
class CompiledAccounts:
    static_keys: List[Address]
    loaded: Dict[Address, List[Address]]
    writable: Dict[Address, bool]

    @property
    def total(self) -> int:
        return len(self.static_keys) + sum(len(v) for v in self.loaded.values())


class Transaction:
    """An atomic, signed batch of instructions.

    ``recent_slot`` plays the part of a recent blockhash: it is part of the
    signed message, so identical instructions sent in different slots get
    distinct txids, and the ledger refuses it once it ages out.
    """

    def __init__(
        self,
        fee_payer: Address,
        instructions: Sequence[Instruction],
        lookup_tables: Iterable[Address] = (),
        *,
        recent_slot: int,
    ) -> None:
        if not instructions:
            raise ValueError("Transaction needs at least one instruction")
        self.fee_payer = fee_payer
        self.instructions: List[Instruction] = list(instructions)
        self.lookup_tables: List[Address] = list(lookup_tables)
        self.recent_slot = recent_slot
        self.signatures: Dict[Address, Tuple[str, str]] = {}

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def message(self) -> Dict[str, Any]:
        return {
            "fee_payer": self.fee_payer,
            "instructions": [ix.to_dict() for ix in self.instructions],
            "lookup_tables": self.lookup_tables,
            "recent_slot": self.recent_slot,
        }

    def message_bytes(self) -> bytes:
        return canonical_json(self.message()).encode("utf-8")

    @property
    def txid(self) -> str:
        return hashlib.sha256(self.message_bytes()).hexdigest()

    def required_signers(self) -> List[Address]:
        signers = [self.fee_payer]
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.address not in signers:
                    signers.append(meta.address)
        return signers

    def sign(self, *keypairs: Keypair) -> "Transaction":
        """Add signatures from ``keypairs``; keys not required are ignored."""
        required = set(self.required_signers())
        message = self.message_bytes()
        for keypair in keypairs:
            if keypair.address in required:
                self.signatures[keypair.address] = (keypair.public_key, keypair.sign(message))
        return self

    def verify_signatures(self) -> None:
        """Check every required signer produced a valid signature.

        Raises:
            SignatureError: If a signature is missing, bound to the wrong key,
                or fails verification
        """
        message = self.message_bytes()
        for signer in self.required_signers():
            entry = self.signatures.get(signer)
            if entry is None:
                raise SignatureError(
                    f"Transaction {self.txid[:10]}... is missing a signature from {signer}",
                    details={"signer": signer},
                )
            public_hex, signature_hex = entry
            try:
                bound_address = address_from_public_key(public_hex)
            except ValueError as exc:
                raise SignatureError(f"Malformed public key for {signer}") from exc
            if bound_address != signer:
                raise SignatureError(
                    f"Public key does not match signer address {signer}",
                    details={"signer": signer},
                )
            if not verify_signature_hex(public_hex, message, signature_hex):
                logger.warning(
                    "Signature verification failed",
                    extra={"event": "tx.signature_invalid", "txid": self.txid, "signer": signer},
                )
                raise SignatureError(
                    f"Transaction {self.txid[:10]}...: signature from {signer} does not verify",
                    details={"signer": signer},
                )

    # ------------------------------------------------------------------
    # Account compilation and sizing
    # ------------------------------------------------------------------

    def compile_accounts(
        self, table_contents: Optional[Mapping[Address, Sequence[Address]]] = None
    ) -> CompiledAccounts:
        """Split referenced accounts into static keys and lookup-table loads.

        Signers and program ids are always static; any other account found in
        one of the referenced tables is loaded by index instead.
        """
        table_contents = table_contents or {}
        writable: Dict[Address, bool] = {self.fee_payer: True}
        pinned = set(self.required_signers())
        for ix in self.instructions:
            pinned.add(ix.program_id)
            writable.setdefault(ix.program_id, False)
            for meta in ix.accounts:
                writable[meta.address] = writable.get(meta.address, False) or meta.is_writable

        loaded: Dict[Address, List[Address]] = {}
        static_keys: List[Address] = []
        for address in writable:
            if address not in pinned:
                table = next(
                    (t for t in self.lookup_tables if address in table_contents.get(t, ())),
                    None,
                )
                if table is not None:
                    loaded.setdefault(table, []).append(address)
                    continue
            static_keys.append(address)
        return CompiledAccounts(static_keys=static_keys, loaded=loaded, writable=writable)

    def serialized_size(
        self, table_contents: Optional[Mapping[Address, Sequence[Address]]] = None
    ) -> int:
        compiled = self.compile_accounts(table_contents)
        num_signatures = len(self.required_signers())
        size = compact_u16_size(num_signatures) + SIGNATURE_SIZE * num_signatures
        # version prefix, header, static keys, recent blockhash
        size += 1 + 3 + compact_u16_size(len(compiled.static_keys))
        size += ADDRESS_SIZE * len(compiled.static_keys) + ADDRESS_SIZE
        size += compact_u16_size(len(self.instructions))
        for ix in self.instructions:
            data_len = ix.data_size()
            size += 1 + compact_u16_size(len(ix.accounts)) + len(ix.accounts)
            size += compact_u16_size(data_len) + data_len
        size += compact_u16_size(len(compiled.loaded))
        for addresses in compiled.loaded.values():
            size += ADDRESS_SIZE + 2 + len(addresses)
        return size
