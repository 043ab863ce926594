from __future__ import annotations
import logging
from typing import Any, Dict, List, Tuple

from models import BillRecord, UploadBatch
from services import config
from services.errors import PersistenceError
from services.installation_resolver import row_installation_number
from services.numeric import as_text, normalize_period, parse_float_safe
from services.spreadsheet_reader import resolve_field

logger = logging.getLogger(__name__)

NUMERIC_FIELDS = (
    "quota",
    "previous_balance",
    "expired_balance",
    "consumption",
    "generation",
    "compensation",
    "transferred",
    "received",
    "current_balance",
    "expiring_balance_amount",
)
TEXT_FIELDS = ("modality", "tariff_post", "expiring_balance_period")

READING_FIELDS = NUMERIC_FIELDS + TEXT_FIELDS


def build_bill_records(
    rows: List[Dict[str, Any]],
    installation_map: Dict[str, int],
    batch: UploadBatch,
    data_source: str = config.DEFAULT_DATA_SOURCE,
) -> Tuple[List[BillRecord], int]:
    """
    Unsaved BillRecords for every usable row, plus the number of rows skipped
    for lacking an installation number or period.
    """
    records: List[BillRecord] = []
    errors = 0
    for idx, row in enumerate(rows, start=2):
        number = row_installation_number(row)
        installation_id = installation_map.get(number) if number else None
        if installation_id is None:
            logger.warning("[upload] row %d skipped: no resolvable installation (%r)", idx, number)
            errors += 1
            continue

        period = normalize_period(resolve_field(row, "period"))
        if not period:
            logger.warning("[upload] row %d skipped: no period for installation %s", idx, number)
            errors += 1
            continue

        payload: Dict[str, Any] = {f: parse_float_safe(resolve_field(row, f)) for f in NUMERIC_FIELDS}
        for f in TEXT_FIELDS:
            payload[f] = as_text(resolve_field(row, f)) or None

        records.append(BillRecord(
            installation_id=installation_id,
            upload_batch_id=batch.id,
            period=period,
            data_source=data_source,
            **payload,
        ))
    return records, errors


async def write_bill_records(records: List[BillRecord]) -> None:
    """Single bulk insert; (installation, period) already present is skipped, not overwritten."""
    if not records:
        return
    try:
        await BillRecord.bulk_create(records, ignore_conflicts=True)
    except Exception as e:
        logger.error("[upload] bulk insert of %d bill records failed: %s", len(records), e)
        raise PersistenceError(f"Erro ao salvar dados de energia: {e}") from e
    logger.info("[upload] %d bill record(s) submitted (duplicates skipped)", len(records))
