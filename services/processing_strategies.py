# services/processing_strategies.py (per-distributor ingestion pipelines)
from __future__ import annotations
import logging
import re
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Type

from models import Distributor, UploadBatch
from services import config, upload_ledger
from services.bill_writer import build_bill_records, write_bill_records
from services.errors import DistributorNotFoundError, MissingInstallationError, UploadError
from services.installation_resolver import collect_installation_numbers, resolve_installations
from services.permanent_mirror import mirror_bill_records
from services.spreadsheet_reader import read_spreadsheet

logger = logging.getLogger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_DEGRADED = "degraded"
OUTCOME_FATAL = "fatal"


@dataclass
class BatchResult:
    """
    success: batch ran, history mirrored
    degraded: bill records written, permanent mirror failed (warnings say why)
    fatal: nothing usable written; `error` carries the request-level failure
    """
    outcome: str
    batch: Optional[UploadBatch] = None
    error: Optional[UploadError] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, batch: UploadBatch) -> "BatchResult":
        return cls(OUTCOME_SUCCESS, batch=batch)

    @classmethod
    def degraded(cls, batch: UploadBatch, warning: str) -> "BatchResult":
        return cls(OUTCOME_DEGRADED, batch=batch, warnings=[warning])

    @classmethod
    def fatal(cls, error: UploadError, batch: Optional[UploadBatch] = None) -> "BatchResult":
        return cls(OUTCOME_FATAL, batch=batch, error=error)

    @property
    def is_fatal(self) -> bool:
        return self.outcome == OUTCOME_FATAL


def missing_installations_message(missing: List[str], limit: int = config.MISSING_MESSAGE_LIMIT) -> str:
    shown = ", ".join(missing[:limit])
    rest = len(missing) - limit
    msg = f"Instalações não encontradas para esta distribuidora: {shown}"
    if rest > 0:
        msg += f" e mais {rest}"
    return msg + ". Cadastre as instalações e envie o arquivo novamente."


class ProcessingStrategy(ABC):
    processing_type: str = config.DEFAULT_PROCESSING_TYPE

    @abstractmethod
    async def process(self, content: bytes, file_name: str, distributor: Distributor) -> BatchResult:
        ...


class CemigProcessingStrategy(ProcessingStrategy):
    """CEMIG "Consulta Saldo GD" sheet: one row per installation per period."""
    processing_type = "cemig"
    data_source = config.DEFAULT_DATA_SOURCE

    async def process(self, content: bytes, file_name: str, distributor: Distributor) -> BatchResult:
        try:
            return await self._run(content, file_name, distributor)
        except UploadError as e:
            logger.warning("[upload] %s rejected (%s): %s", file_name, e.error_type, e.message)
            return BatchResult.fatal(e)

    async def _run(self, content: bytes, file_name: str, distributor: Distributor) -> BatchResult:
        rows = read_spreadsheet(content)
        total = len(rows)

        # 1) validation gate: every referenced installation must already exist
        numbers, _ = collect_installation_numbers(rows)
        installation_map = await resolve_installations(distributor.id, numbers)
        missing = sorted(numbers - installation_map.keys())
        if missing:
            failed = await upload_ledger.record_validation_failure(
                file_name, distributor, total, missing, self.processing_type,
            )
            raise MissingInstallationError(
                missing_installations_message(missing),
                installation_numbers=missing[: config.MISSING_MESSAGE_LIMIT],
                batch_id=str(failed.id),
            )

        batch = await upload_ledger.open_batch(file_name, distributor, total, self.processing_type)

        # 2) bill records (fatal on failure, batch stays in processing)
        records, row_errors = build_bill_records(rows, installation_map, batch, self.data_source)
        try:
            await write_bill_records(records)
        except UploadError as e:
            e.batch_id = str(batch.id)
            raise

        # 3) permanent history (best effort)
        warning = None
        try:
            await mirror_bill_records(records, batch)
        except Exception as e:
            logger.exception("[mirror] batch %s: permanent records not written", batch.id)
            warning = f"Falha ao gravar registros permanentes: {e}"

        await upload_ledger.complete_batch(batch, processed=len(records), errors=row_errors)
        if warning:
            return BatchResult.degraded(batch, warning)
        return BatchResult.ok(batch)


# ---------- registry / factory ----------

STRATEGIES: Dict[str, Type[ProcessingStrategy]] = {
    "cemig": CemigProcessingStrategy,
}
DEFAULT_STRATEGY: Type[ProcessingStrategy] = CemigProcessingStrategy


def normalize_distributor_name(name: Optional[str]) -> str:
    s = (name or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return s.strip()


def strategy_for_name(name: Optional[str]) -> Optional[Type[ProcessingStrategy]]:
    key = normalize_distributor_name(name)
    if key in STRATEGIES:
        return STRATEGIES[key]
    for token in key.split():
        if token in STRATEGIES:
            return STRATEGIES[token]
    return None


async def get_processing_strategy(distributor_id: int) -> Tuple[ProcessingStrategy, Distributor]:
    distributor = await Distributor.get_or_none(id=distributor_id)
    if distributor is None:
        raise DistributorNotFoundError(f"Distribuidora não encontrada: {distributor_id}")

    strategy_cls = strategy_for_name(distributor.name)
    if strategy_cls is None:
        logger.warning(
            "[upload] no strategy for distributor %r, falling back to %s",
            distributor.name, DEFAULT_STRATEGY.__name__,
        )
        strategy_cls = DEFAULT_STRATEGY
    return strategy_cls(), distributor
