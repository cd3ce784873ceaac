"""
Proof Dispatcher (Domain Logic).

Generates the missing proofs of a period, then submits every pending proof
to the registry. Each proof ends SENT or ERROR for this run; ERROR proofs
are not retried until reset.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.domain.proofs.proof_batch import ProofBatchGenerator
from carpool_backend.app.domain.proofs.schedule import resolve_window
from carpool_backend.app.models.proof_enums import ProofStatus
from carpool_backend.app.repositories.proof_repository import ProofRepository
from carpool_backend.app.services.audit import log_event, AuditAction
from carpool_backend.app.services.registry_client import RegistryClient

logger = logging.getLogger("carpool.proofs.dispatch")


@dataclass
class DispatchReport:
    from_date: datetime
    to_date: datetime
    sent: list[int] = field(default_factory=list)
    errors: list[int] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.sent) + len(self.errors)


class ProofDispatcher:

    def __init__(self, db: AsyncSession, generator: ProofBatchGenerator, registry_client: RegistryClient):
        self.db = db
        self.generator = generator
        self.registry_client = registry_client
        self.proofs = ProofRepository(db)

    async def dispatch(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> DispatchReport:
        from_date, to_date = resolve_window(self.generator.clock, from_date, to_date)
        pending = await self.generator.generate_pending(from_date, to_date)
        report = DispatchReport(from_date=from_date, to_date=to_date)

        for proof in pending:
            try:
                accepted = await self.registry_client.submit(proof)
            except Exception:
                # A crashing client is a failed submission, not a failed run
                logger.exception("Registry client crashed on proof %s", proof.id)
                accepted = False

            if accepted:
                proof.status = ProofStatus.SENT
                report.sent.append(proof.id)
                action = AuditAction.PROOF_SENT
            else:
                proof.status = ProofStatus.ERROR
                report.errors.append(proof.id)
                action = AuditAction.PROOF_ERROR
            await log_event(self.db, action=action, proof_id=proof.id)

        await self.proofs.save(pending)

        logger.info(
            "Dispatched %d proofs (%d sent, %d errors) for %s - %s",
            report.total, len(report.sent), len(report.errors), from_date, to_date
        )
        return report
