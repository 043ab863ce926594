# routers/energy_uploads.py
from __future__ import annotations
import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from tortoise.queryset import QuerySet

from api_utils import RAListParams, paginate_and_respond
from deps import get_current_admin_user
from models import PermanentEnergyRecord, UploadBatch
from schemas import (
    PermanentEnergyRecordRead, UploadBatchRead, UploadErrorDetail, UploadHistoryItem, UploadResult,
)
from services.errors import InvalidFormatError, UploadError
from services.processing_strategies import get_processing_strategy
from services.spreadsheet_reader import is_spreadsheet_upload
from services.upload_ledger import STATUS_SUCCESS, batch_status_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/energy-data", tags=["energy-data"])

ERROR_RESPONSES = {
    400: {"model": UploadErrorDetail},
    404: {"model": UploadErrorDetail},
    500: {"model": UploadErrorDetail},
}

HISTORY_SORTS = {"created_at", "completed_at", "file_name", "status"}
PERMANENT_SORTS = {"created_at", "period", "installation_number", "distributor_name"}


def _as_int(v):
    try:
        return int(v)
    except Exception:
        return None


def _raise(e: UploadError):
    raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/upload", response_model=UploadResult, responses=ERROR_RESPONSES)
async def upload_energy_file(
    file: UploadFile = File(...),
    distributor_id: int = Form(...),
    user=Depends(get_current_admin_user),
):
    if not is_spreadsheet_upload(file.content_type, file.filename):
        _raise(InvalidFormatError("Formato de arquivo inválido. Envie um arquivo Excel (.xlsx ou .xls)"))

    try:
        strategy, distributor = await get_processing_strategy(distributor_id)
    except UploadError as e:
        _raise(e)

    content = await file.read()
    file_name = file.filename or "upload.xlsx"
    logger.info("[upload] %s uploaded %s (%d bytes) for distributor %s", user.username, file_name, len(content), distributor.name)

    result = await strategy.process(content, file_name, distributor)
    if result.is_fatal:
        _raise(result.error)

    batch = result.batch
    if batch.status != STATUS_SUCCESS:
        message = "Nenhuma linha válida encontrada no arquivo"
    elif result.warnings:
        message = "Arquivo processado com avisos"
    else:
        message = "Arquivo processado com sucesso"
    return UploadResult(
        success=batch.status == STATUS_SUCCESS,
        message=message,
        batch=UploadBatchRead.model_validate(batch),
        warnings=result.warnings,
    )


@router.get("/upload/history", response_model=list[UploadHistoryItem])
async def upload_history(
    params: RAListParams = Depends(),
    user=Depends(get_current_admin_user),
):
    qs: QuerySet[UploadBatch] = UploadBatch.all().prefetch_related("distributor")
    fmap = {
        "distributor_id": lambda q, v: q.filter(distributor_id=_as_int(v)) if _as_int(v) is not None else q,
        "status":         lambda q, v: q.filter(status=str(v)),
        "file_name":      lambda q, v: q.filter(file_name__icontains=str(v)),
    }
    qs = params.apply_filters(qs, fmap)
    order = params.order(HISTORY_SORTS)

    def to_pyd(b: UploadBatch) -> UploadHistoryItem:
        return UploadHistoryItem(
            id=b.id,
            distributor_id=b.distributor_id,
            distributor_name=(b.distributor.name if b.distributor else None) or "Desconhecida",
            file_name=b.file_name,
            status=batch_status_label(b.status),
            uploaded_at=b.created_at,
            total_items=b.total_count,
            processed_items=b.processed_count,
            error_count=b.error_count,
            not_found_count=b.not_found_count,
        )

    return await paginate_and_respond(qs, params, order, to_pyd)


@router.get("/upload/{batch_id}", response_model=UploadBatchRead)
async def get_upload_batch(batch_id: str, user=Depends(get_current_admin_user)):
    try:
        bid = uuid.UUID(batch_id)
    except ValueError:
        raise HTTPException(404, "Lote de upload não encontrado")
    obj = await UploadBatch.get_or_none(id=bid)
    if not obj:
        raise HTTPException(404, "Lote de upload não encontrado")
    return UploadBatchRead.model_validate(obj)


@router.get("/permanent-records", response_model=list[PermanentEnergyRecordRead])
async def list_permanent_records(
    params: RAListParams = Depends(),
    user=Depends(get_current_admin_user),
):
    qs: QuerySet[PermanentEnergyRecord] = PermanentEnergyRecord.all()
    fmap = {
        "installation_number": lambda q, v: q.filter(installation_number__icontains=str(v)),
        "period":              lambda q, v: q.filter(period=str(v)),
        "distributor_id":      lambda q, v: q.filter(distributor_id=_as_int(v)) if _as_int(v) is not None else q,
        "record_source":       lambda q, v: q.filter(record_source=str(v)),
        "owner_document":      lambda q, v: q.filter(owner_document=str(v)),
    }
    qs = params.apply_filters(qs, fmap)
    order = params.order(PERMANENT_SORTS)
    return await paginate_and_respond(
        qs, params, order, lambda m: PermanentEnergyRecordRead.model_validate(m),
    )
