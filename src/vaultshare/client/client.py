"""
Vault share client.

Builds, signs and sends vault share transactions for one investment. Every
mutating transaction carries a compute-budget request, and record insertion
is split across transactions of at most ``max_records_per_tx`` records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from vaultshare.core import config
from vaultshare.core.addresses import Address, associated_token_address
from vaultshare.core.keys import Keypair
from vaultshare.core.ledger import Ledger, TransactionReceipt
from vaultshare.core.transaction import (
    AccountMeta,
    Instruction,
    Transaction,
    set_compute_unit_limit,
)
from vaultshare.program.constants import ACCOUNT_ID_LEN, INVESTMENT_ID_LEN, VERSION_LEN
from vaultshare.program.instructions import build_instruction
from vaultshare.program.pda import (
    investment_info_address,
    profit_cache_address,
    record_address,
    refund_cache_address,
    vault_address,
)
from vaultshare.program.processor import VaultShareProgram
from vaultshare.program.state import (
    InvestmentInfo,
    InvestmentRecord,
    InvestmentType,
    ProfitShareCache,
    RefundShareCache,
    batch_id_for,
    record_filters,
)

logger = logging.getLogger(__name__)


def fixed_bytes(value: Union[str, bytes], length: int) -> bytes:
    """Encode an identifier into exactly ``length`` bytes, zero padded.

    Raises:
        ValueError: If the encoded value is longer than ``length``
    """
    raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if len(raw) > length:
        raise ValueError(f"{value!r} is longer than {length} bytes")
    return raw.ljust(length, b"\x00")


@dataclass(frozen=True)
class NewRecord:
    """An investor position waiting to be added."""

    record_id: int
    account_id: Union[str, bytes]
    wallet: Address
    amount_usdt: int
    amount_hcoin: int
    stage: int

    @property
    def batch_id(self) -> int:
        return batch_id_for(self.record_id)


class VaultShareClient:
    """Transaction builder bound to one (investment id, version).

    Args:
        ledger: Ledger to send transactions to
        program: Hosted vault share program
        payer: Fee payer and default depositor
        investment_id: Investment identifier, padded to 15 bytes
        version: Version tag, padded to 4 bytes
    """

    def __init__(
        self,
        ledger: Ledger,
        program: VaultShareProgram,
        payer: Keypair,
        investment_id: Union[str, bytes],
        version: Union[str, bytes],
        compute_unit_limit: int = config.COMPUTE_UNIT_LIMIT,
        max_records_per_tx: int = config.MAX_RECORDS_PER_TX,
    ) -> None:
        if max_records_per_tx < 1:
            raise ValueError("max_records_per_tx must be at least 1")
        self.ledger = ledger
        self.program = program
        self.payer = payer
        self.investment_id = fixed_bytes(investment_id, INVESTMENT_ID_LEN)
        self.version = fixed_bytes(version, VERSION_LEN)
        self.compute_unit_limit = compute_unit_limit
        self.max_records_per_tx = max_records_per_tx

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    @property
    def program_id(self) -> Address:
        return self.program.program_id

    @property
    def investment_info_address(self) -> Address:
        return investment_info_address(self.program_id, self.investment_id, self.version)

    @property
    def vault_address(self) -> Address:
        return vault_address(self.program_id, self.investment_id, self.version)

    def vault_token_account(self, mint: Address) -> Address:
        return associated_token_address(self.vault_address, mint)

    def record_address(self, record_id: int, account_id: Union[str, bytes]) -> Address:
        return record_address(
            self.program_id,
            self.investment_id,
            self.version,
            batch_id_for(record_id),
            record_id,
            fixed_bytes(account_id, ACCOUNT_ID_LEN),
        )

    def profit_cache_address(self, batch_id: int) -> Address:
        return profit_cache_address(self.program_id, self.investment_id, self.version, batch_id)

    def refund_cache_address(self, batch_id: int, year_index: int) -> Address:
        return refund_cache_address(
            self.program_id, self.investment_id, self.version, batch_id, year_index
        )

    # ------------------------------------------------------------------
    # Sending and reading
    # ------------------------------------------------------------------

    def build_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Iterable[Keypair] = (),
        lookup_tables: Iterable[Address] = (),
        compute_budget: bool = True,
    ) -> Transaction:
        """Signed transaction anchored at the ledger's current slot."""
        ixs = list(instructions)
        if compute_budget:
            ixs.insert(0, set_compute_unit_limit(self.compute_unit_limit))
        tx = Transaction(
            self.payer.address, ixs, lookup_tables=lookup_tables, recent_slot=self.ledger.slot
        )
        return tx.sign(self.payer, *signers)

    def send(
        self,
        instructions: Sequence[Instruction],
        signers: Iterable[Keypair] = (),
        lookup_tables: Iterable[Address] = (),
        compute_budget: bool = True,
    ) -> TransactionReceipt:
        tx = self.build_transaction(instructions, signers, lookup_tables, compute_budget)
        receipt = self.ledger.process_transaction(tx)
        logger.debug(
            "Transaction sent",
            extra={
                "event": "client.tx_sent",
                "txid": receipt.txid,
                "instructions": [ix.name for ix in instructions],
            },
        )
        return receipt

    def _ix(
        self,
        name: str,
        args: dict,
        signers: Sequence[Keypair] = (),
        remaining: Sequence[AccountMeta] = (),
        payer: Optional[Keypair] = None,
        **accounts: Address,
    ) -> Instruction:
        accounts.setdefault("investment_info", self.investment_info_address)
        accounts["payer"] = (payer or self.payer).address
        return build_instruction(
            self.program_id,
            name,
            accounts,
            args,
            signers=[kp.address for kp in signers],
            remaining=remaining,
        )

    def fetch_investment_info(self) -> Optional[InvestmentInfo]:
        account = self.ledger.get_account(self.investment_info_address)
        return account.data if account is not None else None

    def fetch_records(
        self, batch_id: Optional[int] = None, account_id: Union[str, bytes, None] = None
    ) -> List[Tuple[Address, InvestmentRecord]]:
        """Range-scan this investment's records, ordered by record id."""
        filters = record_filters(
            self.investment_id,
            self.version,
            batch_id=batch_id,
            account_id=fixed_bytes(account_id, ACCOUNT_ID_LEN) if account_id is not None else None,
        )
        found = [
            (address, account.data)
            for address, account in self.ledger.get_program_accounts(self.program_id, filters)
        ]
        return sorted(found, key=lambda item: item[1].record_id)

    def fetch_profit_cache(self, batch_id: int) -> Optional[ProfitShareCache]:
        account = self.ledger.get_account(self.profit_cache_address(batch_id))
        return account.data if account is not None else None

    def fetch_refund_cache(self, batch_id: int, year_index: int) -> Optional[RefundShareCache]:
        account = self.ledger.get_account(self.refund_cache_address(batch_id, year_index))
        return account.data if account is not None else None

    # ------------------------------------------------------------------
    # Investment info
    # ------------------------------------------------------------------

    def initialize_investment_info(
        self,
        investment_type: InvestmentType,
        stage_ratio: Sequence[Sequence[int]],
        start_at: int,
        end_at: int,
        investment_upper_limit: int,
        execute_whitelist: Sequence[Address],
        update_whitelist: Sequence[Address],
        withdraw_whitelist: Sequence[Address],
    ) -> TransactionReceipt:
        ix = self._ix(
            "initialize_investment_info",
            {
                "investment_id": self.investment_id,
                "version": self.version,
                "investment_type": investment_type.value,
                "stage_ratio": [list(row) for row in stage_ratio],
                "start_at": start_at,
                "end_at": end_at,
                "investment_upper_limit": investment_upper_limit,
                "execute_whitelist": list(execute_whitelist),
                "update_whitelist": list(update_whitelist),
                "withdraw_whitelist": list(withdraw_whitelist),
            },
            vault=self.vault_address,
            vault_usdt_account=self.vault_token_account(self.program.usdt_mint),
            vault_hcoin_account=self.vault_token_account(self.program.hcoin_mint),
            usdt_mint=self.program.usdt_mint,
            hcoin_mint=self.program.hcoin_mint,
        )
        return self.send([ix])

    def update_investment_info(
        self,
        signers: Sequence[Keypair],
        new_stage_ratio: Optional[Sequence[Sequence[int]]] = None,
        new_upper_limit: Optional[int] = None,
    ) -> TransactionReceipt:
        args = {
            "new_stage_ratio": [list(r) for r in new_stage_ratio] if new_stage_ratio is not None else None,
            "new_upper_limit": new_upper_limit,
        }
        return self.send([self._ix("update_investment_info", args, signers)], signers)

    def complete_investment_info(self, signers: Sequence[Keypair]) -> TransactionReceipt:
        return self.send([self._ix("complete_investment_info", {}, signers)], signers)

    def deactivate_investment_info(self, signers: Sequence[Keypair]) -> TransactionReceipt:
        return self.send([self._ix("deactivate_investment_info", {}, signers)], signers)

    # ------------------------------------------------------------------
    # Whitelists
    # ------------------------------------------------------------------

    def patch_execute_whitelist(
        self, signers: Sequence[Keypair], wallet_from: Address, wallet_to: Address
    ) -> TransactionReceipt:
        args = {"wallet_from": wallet_from, "wallet_to": wallet_to}
        return self.send([self._ix("patch_execute_whitelist", args, signers)], signers)

    def patch_update_whitelist(
        self, signers: Sequence[Keypair], wallet_from: Address, wallet_to: Address
    ) -> TransactionReceipt:
        args = {"wallet_from": wallet_from, "wallet_to": wallet_to}
        return self.send([self._ix("patch_update_whitelist", args, signers)], signers)

    def patch_withdraw_whitelist(
        self, signers: Sequence[Keypair], wallets: Sequence[Address]
    ) -> TransactionReceipt:
        args = {"wallets": list(wallets)}
        return self.send([self._ix("patch_withdraw_whitelist", args, signers)], signers)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _add_record_ix(self, signers: Sequence[Keypair], record: NewRecord) -> Instruction:
        account_id = fixed_bytes(record.account_id, ACCOUNT_ID_LEN)
        return self._ix(
            "add_investment_record",
            {
                "batch_id": record.batch_id,
                "record_id": record.record_id,
                "account_id": account_id,
                "wallet": record.wallet,
                "amount_usdt": record.amount_usdt,
                "amount_hcoin": record.amount_hcoin,
                "stage": record.stage,
            },
            signers,
            investment_record=self.record_address(record.record_id, account_id),
        )

    def add_investment_record(self, signers: Sequence[Keypair], record: NewRecord) -> TransactionReceipt:
        return self.send([self._add_record_ix(signers, record)], signers)

    def add_investment_records(
        self, signers: Sequence[Keypair], records: Sequence[NewRecord]
    ) -> List[TransactionReceipt]:
        """Add records in order, ``max_records_per_tx`` per transaction.

        Stops at the first failing transaction; earlier chunks stay committed.
        """
        ordered = sorted(records, key=lambda r: r.record_id)
        receipts = []
        for start in range(0, len(ordered), self.max_records_per_tx):
            chunk = ordered[start:start + self.max_records_per_tx]
            receipts.append(self.send([self._add_record_ix(signers, r) for r in chunk], signers))
        logger.info(
            "Investment records added",
            extra={
                "event": "client.records_added",
                "records": len(ordered),
                "transactions": len(receipts),
            },
        )
        return receipts

    def update_investment_record_wallets(
        self,
        signers: Sequence[Keypair],
        account_id: Union[str, bytes],
        new_wallet: Address,
        lookup_table: Optional[Address] = None,
    ) -> TransactionReceipt:
        account_id = fixed_bytes(account_id, ACCOUNT_ID_LEN)
        remaining = [
            AccountMeta(address, is_writable=True)
            for address, _ in self.fetch_records(account_id=account_id)
        ]
        ix = self._ix(
            "update_investment_record_wallets",
            {"account_id": account_id, "new_wallet": new_wallet},
            signers,
            remaining=remaining,
        )
        return self.send([ix], signers, lookup_tables=[lookup_table] if lookup_table else [])

    def revoke_investment_record(
        self, signers: Sequence[Keypair], record_id: int, account_id: Union[str, bytes]
    ) -> TransactionReceipt:
        account_id = fixed_bytes(account_id, ACCOUNT_ID_LEN)
        ix = self._ix(
            "revoke_investment_record",
            {"batch_id": batch_id_for(record_id), "record_id": record_id, "account_id": account_id},
            signers,
            investment_record=self.record_address(record_id, account_id),
        )
        return self.send([ix], signers)

    # ------------------------------------------------------------------
    # Share caches
    # ------------------------------------------------------------------

    def _record_metas(self, batch_id: int) -> List[AccountMeta]:
        return [AccountMeta(address) for address, _ in self.fetch_records(batch_id=batch_id)]

    def estimate_profit_share(
        self,
        signers: Sequence[Keypair],
        batch_id: int,
        total_profit_usdt: int,
        total_invest_usdt: int,
        lookup_table: Optional[Address] = None,
    ) -> TransactionReceipt:
        ix = self._ix(
            "estimate_profit_share",
            {
                "batch_id": batch_id,
                "total_profit_usdt": total_profit_usdt,
                "total_invest_usdt": total_invest_usdt,
            },
            signers,
            remaining=self._record_metas(batch_id),
            cache=self.profit_cache_address(batch_id),
            mint=self.program.usdt_mint,
        )
        return self.send([ix], signers, lookup_tables=[lookup_table] if lookup_table else [])

    def estimate_refund_share(
        self,
        signers: Sequence[Keypair],
        batch_id: int,
        year_index: int,
        lookup_table: Optional[Address] = None,
    ) -> TransactionReceipt:
        ix = self._ix(
            "estimate_refund_share",
            {"batch_id": batch_id, "year_index": year_index},
            signers,
            remaining=self._record_metas(batch_id),
            cache=self.refund_cache_address(batch_id, year_index),
            mint=self.program.hcoin_mint,
        )
        return self.send([ix], signers, lookup_tables=[lookup_table] if lookup_table else [])

    # ------------------------------------------------------------------
    # Distribution
    # ------------------------------------------------------------------

    def execute_profit_share(
        self, signers: Sequence[Keypair], batch_id: int, lookup_table: Optional[Address] = None
    ) -> TransactionReceipt:
        cache = self.fetch_profit_cache(batch_id)
        recipients = _recipient_metas(cache.entries if cache is not None else ())
        ix = self._ix(
            "execute_profit_share",
            {"batch_id": batch_id},
            signers,
            remaining=recipients,
            cache=self.profit_cache_address(batch_id),
            vault=self.vault_address,
            vault_token_account=self.vault_token_account(self.program.usdt_mint),
            mint=self.program.usdt_mint,
        )
        return self.send([ix], signers, lookup_tables=[lookup_table] if lookup_table else [])

    def execute_refund_share(
        self,
        signers: Sequence[Keypair],
        batch_id: int,
        year_index: int,
        lookup_table: Optional[Address] = None,
    ) -> TransactionReceipt:
        cache = self.fetch_refund_cache(batch_id, year_index)
        recipients = _recipient_metas(cache.entries if cache is not None else ())
        ix = self._ix(
            "execute_refund_share",
            {"batch_id": batch_id, "year_index": year_index},
            signers,
            remaining=recipients,
            cache=self.refund_cache_address(batch_id, year_index),
            vault=self.vault_address,
            vault_token_account=self.vault_token_account(self.program.hcoin_mint),
            mint=self.program.hcoin_mint,
        )
        return self.send([ix], signers, lookup_tables=[lookup_table] if lookup_table else [])

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------

    def deposit_sol_to_vault(self, amount: int, depositor: Optional[Keypair] = None) -> TransactionReceipt:
        ix = self._ix("deposit_sol_to_vault", {"amount": amount}, payer=depositor, vault=self.vault_address)
        return self.send([ix], [depositor] if depositor else [])

    def deposit_token_to_vault(
        self, mint: Address, amount: int, depositor: Optional[Keypair] = None
    ) -> TransactionReceipt:
        owner = depositor or self.payer
        ix = self._ix(
            "deposit_token_to_vault",
            {"amount": amount},
            payer=depositor,
            vault=self.vault_address,
            vault_token_account=self.vault_token_account(mint),
            mint=mint,
            depositor_token_account=associated_token_address(owner.address, mint),
        )
        return self.send([ix], [depositor] if depositor else [])

    def _withdraw_ix(self, signers: Sequence[Keypair], recipient: Address) -> Instruction:
        usdt, hcoin = self.program.usdt_mint, self.program.hcoin_mint
        return self._ix(
            "withdraw_from_vault",
            {},
            signers,
            vault=self.vault_address,
            vault_usdt_account=self.vault_token_account(usdt),
            vault_hcoin_account=self.vault_token_account(hcoin),
            usdt_mint=usdt,
            hcoin_mint=hcoin,
            recipient=recipient,
            recipient_usdt_account=associated_token_address(recipient, usdt),
            recipient_hcoin_account=associated_token_address(recipient, hcoin),
        )

    def withdraw_from_vault(self, signers: Sequence[Keypair], recipient: Address) -> TransactionReceipt:
        return self.send([self._withdraw_ix(signers, recipient)], signers)


def _recipient_metas(entries) -> List[AccountMeta]:
    seen = dict.fromkeys(entry.recipient_ata for entry in entries)
    return [AccountMeta(address, is_writable=True) for address in seen]
