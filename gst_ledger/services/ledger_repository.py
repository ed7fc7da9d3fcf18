"""Append-only persistence of party ledger entries."""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gst_ledger.config import MONEY_SCALE
from gst_ledger.core.exceptions import ConcurrentModificationError
from gst_ledger.core.money import ensure_unit_multiple
from gst_ledger.models.ledger import PartyLedgerEntry
from gst_ledger.schemas.ledger import LedgerEntry


logger = logging.getLogger(__name__)

# Smallest amount the party_ledger columns can hold
STORED_UNIT = Decimal(1).scaleb(-MONEY_SCALE)

AMOUNT_FIELDS = ("debit_amount", "credit_amount", "amount", "running_balance")


class LedgerRepository:
    """
    Stores LedgerEntry records in ``party_ledger``.

    Rows are only ever inserted. The unique ``(party_id, sequence)``
    constraint turns a second writer at the same head into a
    ConcurrentModificationError.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def head_sequence(self, party_id: UUID) -> Optional[int]:
        """Highest stored sequence for a party, None when nothing is stored."""
        result = await self.db.execute(
            select(func.max(PartyLedgerEntry.sequence)).where(PartyLedgerEntry.party_id == party_id)
        )
        return result.scalar()

    async def list_entries(self, party_id: UUID) -> List[LedgerEntry]:
        """All entries of a party in sequence order."""
        result = await self.db.execute(
            select(PartyLedgerEntry)
            .where(PartyLedgerEntry.party_id == party_id)
            .order_by(PartyLedgerEntry.sequence)
        )
        return [LedgerEntry.model_validate(row) for row in result.scalars().all()]

    async def append(self, entry: LedgerEntry, expected_sequence: Optional[int] = None) -> LedgerEntry:
        """
        Insert one entry.

        Args:
            entry: Entry produced by LedgerEngine
            expected_sequence: Stored head the caller computed against

        Raises:
            ValidationError: An amount has more decimal places than the
                columns store
            ConcurrentModificationError: Head moved, sequence skips ahead, or
                another writer already stored this sequence
        """
        for name in AMOUNT_FIELDS:
            ensure_unit_multiple(getattr(entry, name), name, STORED_UNIT)

        head = await self.head_sequence(entry.party_id)
        if expected_sequence is not None and expected_sequence != head:
            raise ConcurrentModificationError(
                f"Stored ledger for party {entry.party_id} is at sequence {head}, expected {expected_sequence}",
                {"party_id": str(entry.party_id), "expected_sequence": expected_sequence, "head_sequence": head},
            )
        next_sequence = 0 if head is None else head + 1
        if entry.sequence > next_sequence:
            raise ConcurrentModificationError(
                f"Entry sequence {entry.sequence} skips ahead of stored head {head}",
                {"party_id": str(entry.party_id), "sequence": entry.sequence, "head_sequence": head},
            )

        row = PartyLedgerEntry(**entry.model_dump())
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Duplicate ledger sequence {entry.sequence} for party {entry.party_id}")
            raise ConcurrentModificationError(
                f"Sequence {entry.sequence} already stored for party {entry.party_id}",
                {"party_id": str(entry.party_id), "sequence": entry.sequence},
            ) from e

        logger.info(f"Stored ledger entry {entry.sequence} ({entry.document_type}) for party {entry.party_id}")
        return entry

    async def append_many(self, entries: Iterable[LedgerEntry]) -> int:
        """Insert entries in order; stops at the first conflict."""
        count = 0
        for entry in entries:
            await self.append(entry)
            count += 1
        return count
