from __future__ import annotations
import logging
from typing import Dict, List

from models import BillRecord, Installation, PermanentEnergyRecord, UploadBatch
from services.bill_writer import READING_FIELDS

logger = logging.getLogger(__name__)


def record_source_for(batch: UploadBatch) -> str:
    return f"upload_{batch.id}"


async def mirror_bill_records(records: List[BillRecord], batch: UploadBatch) -> int:
    """
    Copy freshly written bill records into the permanent history table,
    denormalizing installation / distributor / owner context.
    Returns how many permanent records were submitted.
    """
    if not records:
        return 0

    ids = list({r.installation_id for r in records})
    installations = await Installation.filter(id__in=ids).prefetch_related("distributor", "owner")
    by_id: Dict[int, Installation] = {i.id: i for i in installations}

    source = record_source_for(batch)
    mirrored: List[PermanentEnergyRecord] = []
    for r in records:
        inst = by_id.get(r.installation_id)
        if inst is None:
            logger.warning("[mirror] installation %s vanished before mirroring period %s", r.installation_id, r.period)
            continue
        owner = inst.owner
        mirrored.append(PermanentEnergyRecord(
            installation_id=inst.id,
            installation_number=inst.installation_number,
            installation_type=inst.type,
            distributor_id=inst.distributor_id,
            distributor_name=inst.distributor.name if inst.distributor else None,
            owner_id=owner.id if owner else None,
            owner_name=owner.name if owner else None,
            owner_document=owner.document if owner else None,
            upload_batch_id=str(batch.id),
            record_source=source,
            period=r.period,
            **{f: getattr(r, f) for f in READING_FIELDS},
        ))

    if mirrored:
        await PermanentEnergyRecord.bulk_create(mirrored, ignore_conflicts=True)
    logger.info("[mirror] %d permanent record(s) submitted for batch %s", len(mirrored), batch.id)
    return len(mirrored)
