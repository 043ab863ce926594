# services/spreadsheet_reader.py (distributor spreadsheet -> row dicts)
from __future__ import annotations
import io
import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional

import pandas as pd

from services.errors import InvalidFormatError

logger = logging.getLogger(__name__)

EMPTY_FILE_MESSAGE = "Arquivo vazio ou formato inválido"

# Ordered candidates per logical field; first header present wins.
HEADER_ALIASES: Dict[str, tuple[str, ...]] = {
    "installation_number":     ("Instalação", "Instalacao", "instalacao", "instalação"),
    "period":                  ("Período", "Periodo", "período", "periodo", "Data"),
    "modality":                ("Modalidade",),
    "quota":                   ("Quota", "Quota (%)"),
    "tariff_post":             ("Posto Horário", "Posto Horario"),
    "previous_balance":        ("Saldo Anterior",),
    "expired_balance":         ("Saldo Expirado",),
    "consumption":             ("Consumo",),
    "generation":              ("Geração", "Geracao"),
    "compensation":            ("Compensação", "Compensacao"),
    "transferred":             ("Transferido",),
    "received":                ("Recebimento", "Recebido"),
    "current_balance":         ("Saldo Atual",),
    "expiring_balance_amount": ("Quantidade Saldo a Expirar",),
    "expiring_balance_period": ("Período Saldo a Expirar", "Periodo Saldo a Expirar"),
}

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")


def _normkey(s: Any) -> str:
    if s is None:
        return ""
    s = str(s).strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = re.sub(r"[^a-z0-9%\s]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def is_spreadsheet_upload(content_type: Optional[str], file_name: Optional[str]) -> bool:
    ct = (content_type or "").lower()
    if "spreadsheet" in ct or "excel" in ct:
        return True
    return (file_name or "").lower().endswith(SPREADSHEET_EXTENSIONS)


def read_spreadsheet(content: bytes) -> List[Dict[str, Any]]:
    """
    Load the first sheet of an Excel payload into ordered row dicts keyed by header.
    Empty cells come back as None.
    """
    if not content:
        raise InvalidFormatError(EMPTY_FILE_MESSAGE)
    try:
        df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object)
    except Exception as e:
        logger.warning("[spreadsheet] could not read workbook: %s", e)
        raise InvalidFormatError(EMPTY_FILE_MESSAGE) from e

    df = df.dropna(how="all")
    if df.empty:
        raise InvalidFormatError(EMPTY_FILE_MESSAGE)

    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    rows = df.to_dict(orient="records")
    logger.debug("[spreadsheet] %d data rows, headers=%s", len(rows), list(df.columns))
    return rows


def resolve_field(row: Dict[str, Any], field: str, default: Any = None) -> Any:
    """
    Look a logical field up in a row: exact alias keys first (in order),
    then an accent/case-insensitive comparison against the row's headers.
    """
    aliases = HEADER_ALIASES[field]
    for a in aliases:
        if a in row and row[a] not in (None, ""):
            return row[a]

    normalized = {}
    for k in row:
        nk = _normkey(k)
        if nk and nk not in normalized:
            normalized[nk] = k
    for a in aliases:
        key = normalized.get(_normkey(a))
        if key is not None and row[key] not in (None, ""):
            return row[key]
    return default
