from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from tortoise.expressions import Q

from models import BillRecord, Installation, PermanentEnergyRecord
from schemas import EnergyRecord, InstallationSummary
from services import config
from services.invoice_engine import previous_periods


def _widen_periods(periods: Sequence[str], history_months: int) -> List[str]:
    """Requested periods plus the preceding months needed for the history block."""
    out = list(periods)
    for p in periods:
        out.extend(previous_periods(p, history_months))
    return list(dict.fromkeys(out))


async def load_energy_records(
    *,
    distributor_id: Optional[int] = None,
    periods: Optional[Sequence[str]] = None,
    installation_numbers: Optional[Sequence[str]] = None,
    history_months: int = config.INVOICE_HISTORY_MONTHS,
    source: str = "bill_records",
) -> Tuple[List[EnergyRecord], List[InstallationSummary]]:
    """
    Persisted readings (live bill records or the permanent history) projected
    onto the invoice engine's EnergyRecord shape, plus the installations they reference.
    """
    wanted_periods = _widen_periods(periods, history_months) if periods else None

    if source == "permanent_records":
        q = Q()
        if distributor_id is not None:
            q &= Q(distributor_id=distributor_id)
        if wanted_periods:
            q &= Q(period__in=wanted_periods)
        if installation_numbers:
            q &= Q(installation_number__in=list(installation_numbers))
        rows = await PermanentEnergyRecord.filter(q).order_by("period", "installation_number")
        records = [
            EnergyRecord(
                installation_number=r.installation_number,
                distributor_id=r.distributor_id,
                type=r.installation_type or "CONSUMER",
                period=r.period,
                quota=r.quota or 0,
                consumption=r.consumption,
                generation=r.generation,
                compensation=r.compensation,
                transferred=r.transferred,
                received=r.received,
                previous_balance=r.previous_balance,
                current_balance=r.current_balance,
                expiring_amount=r.expiring_balance_amount,
                expiration_period=r.expiring_balance_period,
            )
            for r in rows
        ]
        # permanent rows keep their own snapshot of the installation; numbers repeat across distributors
        seen = {}
        for r in rows:
            seen.setdefault(r.installation_id, InstallationSummary(
                id=r.installation_id,
                installation_number=r.installation_number,
                distributor_id=r.distributor_id,
                type=r.installation_type or "CONSUMER",
                owner_id=r.owner_id,
                owner_name=r.owner_name,
            ))
        return records, list(seen.values())

    q = Q()
    if distributor_id is not None:
        q &= Q(installation__distributor_id=distributor_id)
    if wanted_periods:
        q &= Q(period__in=wanted_periods)
    if installation_numbers:
        q &= Q(installation__installation_number__in=list(installation_numbers))
    rows = await BillRecord.filter(q).prefetch_related("installation", "installation__owner").order_by("period")

    records: List[EnergyRecord] = []
    installations = {}
    for r in rows:
        inst: Installation = r.installation
        records.append(EnergyRecord(
            installation_number=inst.installation_number,
            distributor_id=inst.distributor_id,
            type=inst.type,
            period=r.period,
            quota=r.quota or 0,
            consumption=r.consumption,
            generation=r.generation,
            compensation=r.compensation,
            transferred=r.transferred,
            received=r.received,
            previous_balance=r.previous_balance,
            current_balance=r.current_balance,
            expiring_amount=r.expiring_balance_amount,
            expiration_period=r.expiring_balance_period,
        ))
        if inst.id not in installations:
            owner = inst.owner
            installations[inst.id] = InstallationSummary(
                id=inst.id,
                installation_number=inst.installation_number,
                distributor_id=inst.distributor_id,
                type=inst.type,
                owner_id=owner.id if owner else None,
                owner_name=owner.name if owner else None,
            )
    return records, list(installations.values())
