from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Set, Tuple

from models import Installation
from services.numeric import as_text
from services.spreadsheet_reader import resolve_field

logger = logging.getLogger(__name__)


def row_installation_number(row: Dict[str, Any]) -> str:
    return as_text(resolve_field(row, "installation_number"))


def collect_installation_numbers(rows: List[Dict[str, Any]]) -> Tuple[Set[str], int]:
    """Distinct installation numbers in the sheet, plus how many rows carry none."""
    numbers: Set[str] = set()
    without_number = 0
    for idx, row in enumerate(rows, start=2):  # header is sheet row 1
        number = row_installation_number(row)
        if not number:
            logger.warning("[upload] row %d has no installation number", idx)
            without_number += 1
            continue
        numbers.add(number)
    return numbers, without_number


async def resolve_installations(distributor_id: int, numbers: Iterable[str]) -> Dict[str, int]:
    """installation_number -> installation id, for the installations the distributor already has."""
    numbers = list(numbers)
    if not numbers:
        return {}
    rows = await Installation.filter(
        installation_number__in=numbers, distributor_id=distributor_id
    ).values("id", "installation_number")
    return {r["installation_number"]: r["id"] for r in rows}
