# services/upload_ledger.py (UploadBatch lifecycle)
#
#   processing --(processed > 0)--> success
#   processing --(processed == 0)--> failed
#   (validation failure) ----------> failed   (created directly, never processing)
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import List

from models import Distributor, UploadBatch
from services import config
from services.errors import InvalidBatchTransition

logger = logging.getLogger(__name__)
UTC = timezone.utc

STATUS_PROCESSING = "processing"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = {STATUS_SUCCESS, STATUS_FAILED}

_HISTORY_LABELS = {
    STATUS_SUCCESS: "completed",
    STATUS_PROCESSING: "processing",
    STATUS_FAILED: "error",
}


def batch_status_label(status: str) -> str:
    """Status wording used by the upload history screen."""
    return _HISTORY_LABELS.get(status, "processing")


async def record_validation_failure(
    file_name: str,
    distributor: Distributor,
    total: int,
    missing: List[str],
    processing_type: str = config.DEFAULT_PROCESSING_TYPE,
) -> UploadBatch:
    batch = await UploadBatch.create(
        file_name=file_name,
        distributor=distributor,
        status=STATUS_FAILED,
        total_count=total,
        processed_count=0,
        error_count=len(missing),
        not_found_count=len(missing),
        processing_type=processing_type,
        completed_at=datetime.now(tz=UTC),
        error_details={
            "type": "missing_installation",
            "missing_installations": missing[: config.MISSING_DETAILS_LIMIT],
            "missing_count": len(missing),
        },
    )
    logger.info("[upload] batch %s failed validation: %d missing installation(s)", batch.id, len(missing))
    return batch


async def open_batch(
    file_name: str,
    distributor: Distributor,
    total: int,
    processing_type: str = config.DEFAULT_PROCESSING_TYPE,
) -> UploadBatch:
    batch = await UploadBatch.create(
        file_name=file_name,
        distributor=distributor,
        status=STATUS_PROCESSING,
        total_count=total,
        processing_type=processing_type,
    )
    logger.info("[upload] batch %s opened for %s (%d rows)", batch.id, file_name, total)
    return batch


async def complete_batch(batch: UploadBatch, processed: int, errors: int, not_found: int = 0) -> UploadBatch:
    if batch.status in TERMINAL_STATUSES:
        raise InvalidBatchTransition(f"batch {batch.id} is already {batch.status}")

    batch.status = STATUS_SUCCESS if processed > 0 else STATUS_FAILED
    batch.processed_count = processed
    batch.error_count = errors
    batch.not_found_count = not_found
    batch.completed_at = datetime.now(tz=UTC)
    await batch.save(update_fields=[
        "status", "processed_count", "error_count", "not_found_count", "completed_at",
    ])
    logger.info(
        "[upload] batch %s -> %s (total=%d processed=%d errors=%d)",
        batch.id, batch.status, batch.total_count, processed, errors,
    )
    return batch
