"""
Lookup table orchestration for batch transactions.

A batch estimate loads up to 30 record accounts and a batch payout touches
up to 30 recipient token accounts; neither fits the packet limit with full
32-byte keys. The orchestrator builds one lookup table per batch, extends it
in chunks that each fit a transaction, and waits until the ledger lets
transactions reference it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from vaultshare.core import config
from vaultshare.core.addresses import Address
from vaultshare.core.exceptions import LookupTableError, LookupTableNotReadyError
from vaultshare.core.keys import Keypair
from vaultshare.core.lookup_table import (
    AddressLookupTable,
    create_lookup_table_instruction,
    extend_lookup_table_instruction,
)
from vaultshare.client.client import VaultShareClient

logger = logging.getLogger(__name__)

RECORD_TABLE = "record"
CACHE_TABLE = "cache"

TableKey = Tuple[str, int, Optional[int]]


class LookupBatchOrchestrator:
    """Builds and tracks the lookup tables used by batch transactions.

    Args:
        client: Client bound to the investment the tables serve
        authority: Table authority, defaults to the client's payer
        chunk_size: Addresses appended per transaction
        poll_attempts: Resolvability checks before giving up
        poll_interval: Base delay between checks; attempt ``n`` waits ``n`` times it
        sleep: Delay function, replaceable in tests
    """

    def __init__(
        self,
        client: VaultShareClient,
        authority: Optional[Keypair] = None,
        chunk_size: int = config.LOOKUP_CHUNK_SIZE,
        poll_attempts: int = config.LOOKUP_POLL_ATTEMPTS,
        poll_interval: float = config.LOOKUP_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if poll_attempts < 1:
            raise ValueError("poll_attempts must be at least 1")
        self.client = client
        self.authority = authority or client.payer
        self.chunk_size = chunk_size
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.tables: Dict[TableKey, Address] = {}

    @property
    def ledger(self):
        return self.client.ledger

    def get(self, kind: str, batch_id: int, year_index: Optional[int] = None) -> Optional[Address]:
        return self.tables.get((kind, batch_id, year_index))

    def addresses_for(self, kind: str, batch_id: int, year_index: Optional[int] = None) -> List[Address]:
        """Addresses a table of ``kind`` should hold for one batch.

        Raises:
            ValueError: For an unknown kind
        """
        if kind == RECORD_TABLE:
            return [address for address, _ in self.client.fetch_records(batch_id=batch_id)]
        if kind == CACHE_TABLE:
            if year_index is None:
                cache = self.client.fetch_profit_cache(batch_id)
            else:
                cache = self.client.fetch_refund_cache(batch_id, year_index)
            if cache is None:
                return []
            return list(dict.fromkeys(entry.recipient_ata for entry in cache.entries))
        raise ValueError(f"Unknown lookup table kind: {kind!r}")

    def build(self, kind: str, batch_id: int, year_index: Optional[int] = None) -> Address:
        """Create, fill and await the lookup table for one batch.

        A table already built for the same key is returned as is.

        Raises:
            LookupTableError: If there is nothing to put in the table
            LookupTableNotReadyError: If the table never becomes resolvable
            TransactionError: If a create or extend transaction fails
        """
        key = (kind, batch_id, year_index)
        if key in self.tables:
            return self.tables[key]

        addresses = self.addresses_for(kind, batch_id, year_index)
        if not addresses:
            raise LookupTableError(
                f"No {kind} addresses found for batch {batch_id}",
                details={"kind": kind, "batch_id": batch_id, "year_index": year_index},
            )
        chunks = [
            addresses[start:start + self.chunk_size]
            for start in range(0, len(addresses), self.chunk_size)
        ]

        authority = self.authority.address
        payer = self.client.payer.address
        create_ix, table = create_lookup_table_instruction(authority, payer, self.ledger.slot)
        self.client.send(
            [create_ix, extend_lookup_table_instruction(table, authority, payer, chunks[0])],
            [self.authority],
        )
        for chunk in chunks[1:]:
            self.client.send(
                [extend_lookup_table_instruction(table, authority, payer, chunk)],
                [self.authority],
            )

        self.wait_until_resolvable(table)
        self.tables[key] = table
        logger.info(
            "Lookup table ready",
            extra={
                "event": "lookup.table_ready",
                "kind": kind,
                "batch_id": batch_id,
                "year_index": year_index,
                "table": table,
                "addresses": len(addresses),
                "transactions": len(chunks),
            },
        )
        return table

    def wait_until_resolvable(self, table: Address) -> AddressLookupTable:
        """Poll until ``table`` may be referenced by transactions.

        Raises:
            LookupTableNotReadyError: After ``poll_attempts`` failed checks
        """
        for attempt in range(1, self.poll_attempts + 1):
            resolved = self.ledger.get_address_lookup_table(table)
            if resolved is not None:
                return resolved
            logger.debug(
                "Lookup table not yet resolvable",
                extra={"event": "lookup.table_pending", "table": table, "attempt": attempt},
            )
            if attempt < self.poll_attempts:
                self._sleep(self.poll_interval * attempt)
        logger.warning(
            "Lookup table never became resolvable",
            extra={"event": "lookup.table_timeout", "table": table, "attempts": self.poll_attempts},
        )
        raise LookupTableNotReadyError(
            f"Lookup table {table} not resolvable after {self.poll_attempts} attempts",
            details={"table": table, "slot": self.ledger.slot},
        )
