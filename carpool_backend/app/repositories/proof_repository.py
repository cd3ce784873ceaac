"""
Proof persistence.

Repository operations consumed by the proof core: lookup by id, by
(ride agreement, day), by status, and batch save.
"""

from datetime import date, datetime
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.models.proof import Proof
from carpool_backend.app.models.proof_enums import ProofStatus


class ProofRepository:
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def find_by_id(self, proof_id: int, for_update: bool = False) -> Optional[Proof]:
        """
        Proof by id.

        ``for_update`` locks the row until the end of the transaction and
        overwrites any state already held by the session.
        """
        query = select(Proof).where(Proof.id == proof_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def find_by_ride_and_date(
        self,
        ride_agreement_id: int,
        day: Union[date, datetime]
    ) -> Optional[Proof]:
        """Proof of a ride agreement for the calendar day of ``day``."""
        if isinstance(day, datetime):
            day = day.date()
        result = await self.db.execute(
            select(Proof).where(
                Proof.ride_agreement_id == ride_agreement_id,
                Proof.proof_date == day
            )
        )
        return result.scalar_one_or_none()
    
    async def list_by_status(self, status: ProofStatus) -> list[Proof]:
        result = await self.db.execute(
            select(Proof).where(Proof.status == status).order_by(Proof.id)
        )
        return list(result.scalars().all())
    
    async def save(self, proofs: Iterable[Proof], commit: bool = True) -> None:
        """Persist a batch of proofs in one transaction."""
        self.db.add_all(list(proofs))
        if commit:
            await self.db.commit()
        else:
            await self.db.flush()
