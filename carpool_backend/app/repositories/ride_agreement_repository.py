"""
Read access to ride agreements and their waypoints.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.models.ride_agreement import RideAgreement, Criteria
from carpool_backend.app.models.waypoint import Waypoint
from carpool_backend.app.models.proof_enums import Frequency, RideAgreementStatus, WaypointRole


class RideAgreementRepository:
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def find_by_id(self, ride_agreement_id: int) -> Optional[RideAgreement]:
        result = await self.db.execute(
            select(RideAgreement).where(RideAgreement.id == ride_agreement_id)
        )
        return result.scalar_one_or_none()
    
    async def find_accepted_for_period(self, from_date: datetime, to_date: datetime) -> list[RideAgreement]:
        """
        Accepted ride agreements active in the period.
        
        Punctual rides whose date falls inside the period, and regular rides
        whose validity range overlaps it.
        """
        start, end = from_date.date(), to_date.date()
        query = select(RideAgreement).join(
            Criteria, RideAgreement.criteria_id == Criteria.id
        ).where(
            RideAgreement.status == RideAgreementStatus.ACCEPTED,
            or_(
                and_(
                    Criteria.frequency == Frequency.PUNCTUAL,
                    Criteria.from_date >= start,
                    Criteria.from_date <= end,
                ),
                and_(
                    Criteria.frequency == Frequency.REGULAR,
                    Criteria.from_date <= end,
                    or_(Criteria.to_date.is_(None), Criteria.to_date >= start),
                ),
            )
        ).order_by(RideAgreement.id)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def _find_waypoint(self, ride_agreement_id: int, role: WaypointRole, highest: bool) -> Optional[Waypoint]:
        order = Waypoint.position.desc() if highest else Waypoint.position.asc()
        result = await self.db.execute(
            select(Waypoint).where(
                Waypoint.ride_agreement_id == ride_agreement_id,
                Waypoint.role == role
            ).order_by(order).limit(1)
        )
        return result.scalar_one_or_none()
    
    async def find_min_waypoint(self, ride_agreement_id: int, role: WaypointRole) -> Optional[Waypoint]:
        """Origin of the role's path."""
        return await self._find_waypoint(ride_agreement_id, role, highest=False)
    
    async def find_max_waypoint(self, ride_agreement_id: int, role: WaypointRole) -> Optional[Waypoint]:
        """Destination of the role's path."""
        return await self._find_waypoint(ride_agreement_id, role, highest=True)
