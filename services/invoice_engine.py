# services/invoice_engine.py (readings -> invoice views, no DB access)
from __future__ import annotations
import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, TypeVar, Union

from schemas import (
    ClientInfo, EnergyHistoryItem, EnergyRates, EnergyRecord, InstallationInfo,
    InvoiceCalculation, InvoiceData, PeriodInfo, RateOverride, TechnicalInfo,
)
from services import config

logger = logging.getLogger(__name__)

CONSUMER = "CONSUMER"
GENERATOR = "GENERATOR"

T = TypeVar("T")


def group_by(items: Iterable[T], key: str) -> Dict[str, List[T]]:
    out: Dict[str, List[T]] = {}
    for it in items:
        out.setdefault(str(getattr(it, key)), []).append(it)
    return out


InstallationKey = Tuple[Any, str]


def installation_key(item: Any) -> InstallationKey:
    """Installation numbers are only unique within a distributor."""
    return getattr(item, "distributor_id", None), str(item.installation_number)


def parse_period(period: str) -> Tuple[date, date]:
    """'MM/YYYY' -> (first day, last day) of that month."""
    month_s, year_s = period.strip().split("/")
    month, year = int(month_s), int(year_s)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def previous_periods(period: str, months: int) -> List[str]:
    """The `months` periods before `period`, most recent first."""
    start, _ = parse_period(period)
    out = []
    month, year = start.month, start.year
    for _ in range(months):
        month -= 1
        if month <= 0:
            month += 12
            year -= 1
        out.append(f"{month:02d}/{year}")
    return out


def build_history(records: Sequence[EnergyRecord], period: str, months: int) -> List[EnergyHistoryItem]:
    """Consumption / compensation of the preceding periods, from the readings at hand (0 when absent)."""
    by_period = group_by(records, "period")
    history = []
    for p in previous_periods(period, months):
        rows = by_period.get(p, [])
        history.append(EnergyHistoryItem(
            period=p,
            consumption=sum(r.consumption or 0 for r in rows),
            compensation=sum(r.compensation or 0 for r in rows),
        ))
    return history


def _billed_rate(cemig_rate: float, discount: float) -> float:
    return cemig_rate * (1 - discount)


def _calculation(
    total_consumption: float,
    total_compensation: float,
    total_received: float,
    cemig_rate: float,
    billed_rate: float,
) -> InvoiceCalculation:
    original_amount = total_consumption * cemig_rate
    final_amount = (total_consumption - total_compensation) * billed_rate
    return InvoiceCalculation(
        total_consumption=total_consumption,
        total_compensation=total_compensation,
        total_received=total_received,
        original_amount=original_amount,
        compensated_amount=total_compensation * cemig_rate,
        final_amount=final_amount,
        saved_amount=original_amount - final_amount,
        co2_avoided=total_compensation * config.KWH_TO_CO2_KG,
    )


def _is_consumer(records: Sequence[EnergyRecord], installation: Any) -> bool:
    if str(getattr(installation, "type", CONSUMER)).upper() != CONSUMER:
        return False
    return any(str(r.type).upper() == CONSUMER for r in records)


def generate_invoice_data(
    records: Sequence[EnergyRecord],
    installations: Sequence[Any],
    cemig_rate: float = config.DEFAULT_CEMIG_RATE,
    discount: float = config.DEFAULT_DISCOUNT,
    *,
    history_months: int = config.INVOICE_HISTORY_MONTHS,
    periods: Sequence[str] | None = None,
) -> List[InvoiceData]:
    """
    One pending invoice per consumer installation per period.

    `installations` needs `id`, `installation_number`, `type` and optionally
    `distributor_id` / `owner_id` / `owner_name` (InstallationSummary or the ORM model).
    Readings are matched to installations on (distributor_id, installation_number),
    so equal numbers under different distributors stay separate invoices
    (set `distributor_id` on both records and installations, or on neither).
    `periods` restricts which periods get invoiced; the remaining records still
    feed the history block.
    """
    logger.info("[invoice] generating from %d record(s), %d installation(s)", len(records), len(installations))

    by_installation: Dict[InstallationKey, List[EnergyRecord]] = {}
    for r in records:
        by_installation.setdefault(installation_key(r), []).append(r)
    by_period = group_by(records, "period")
    installation_map: Mapping[InstallationKey, Any] = {installation_key(i): i for i in installations}
    billed_rate = _billed_rate(cemig_rate, discount)
    wanted = set(periods) if periods else None

    invoices: List[InvoiceData] = []
    for period, period_records in by_period.items():
        if wanted is not None and period not in wanted:
            continue

        keys = list(dict.fromkeys(installation_key(r) for r in period_records))
        consumers = [
            k for k in keys
            if k in installation_map and _is_consumer(by_installation.get(k, []), installation_map[k])
        ]
        logger.debug("[invoice] period %s: %d consumer installation(s)", period, len(consumers))

        for key in consumers:
            installation = installation_map[key]
            try:
                invoices.append(_build_invoice(
                    installation,
                    period,
                    [r for r in period_records if installation_key(r) == key],
                    by_installation[key],
                    cemig_rate,
                    discount,
                    billed_rate,
                    history_months,
                    sequence=len(invoices) + 1,
                ))
            except Exception:
                logger.exception("[invoice] failed for installation %s, period %s", installation.installation_number, period)

    logger.info("[invoice] generated %d invoice(s)", len(invoices))
    return invoices


def _build_invoice(
    installation: Any,
    period: str,
    rows: List[EnergyRecord],
    all_rows: List[EnergyRecord],
    cemig_rate: float,
    discount: float,
    billed_rate: float,
    history_months: int,
    *,
    sequence: int,
) -> InvoiceData:
    period_start, period_end = parse_period(period)
    compact = period.replace("/", "")
    inst_id = str(installation.id)

    calculation = _calculation(
        total_consumption=sum(r.consumption or 0 for r in rows),
        total_compensation=sum(r.compensation or 0 for r in rows),
        total_received=sum(r.received or 0 for r in rows),
        cemig_rate=cemig_rate,
        billed_rate=billed_rate,
    )

    technical_info = [
        TechnicalInfo(
            reference=installation.installation_number,
            installation=r.installation_number,
            consumption=r.consumption or 0,
            compensation=r.compensation or 0,
            reception=r.received or 0,
            current_balance=r.current_balance or 0,
            amount=(r.consumption or 0) * billed_rate,
        )
        for r in rows
    ]

    owner_id = getattr(installation, "owner_id", None)
    owner_name = getattr(installation, "owner_name", None)

    invoice = InvoiceData(
        id=f"INV-{inst_id}-{compact}",
        invoice_number=f"{inst_id[:4]}-{compact}-{sequence:03d}",
        client=ClientInfo(
            id=str(owner_id) if owner_id is not None else "unknown",
            name=owner_name or installation.installation_number,
        ),
        period=PeriodInfo(reference=period, start=period_start, end=period_end),
        due_date=period_end + timedelta(days=config.INVOICE_DUE_DAYS),
        rates=EnergyRates(cemig_rate=cemig_rate, discount=discount, billed_rate=billed_rate),
        installations=[InstallationInfo(
            id=inst_id,
            name=installation.installation_number,
            type="consumidora",
            quota=100,
            installation_number=installation.installation_number,
        )],
        technical_info=technical_info,
        history=build_history(all_rows, period, history_months),
        calculation=calculation,
        status="pending",
    )
    logger.debug(
        "[invoice] %s %s: consumption=%s compensation=%s final=%.2f",
        installation.installation_number, period,
        calculation.total_consumption, calculation.total_compensation, calculation.final_amount,
    )
    return invoice


def recalculate_invoice(invoice: InvoiceData, new_rates: Union[RateOverride, Mapping[str, Any]]) -> InvoiceData:
    """
    Re-derive the money fields of an invoice under new rates.
    Stored totals are reused as-is; the input invoice is left untouched.
    """
    if not isinstance(new_rates, RateOverride):
        new_rates = RateOverride(**dict(new_rates))

    cemig_rate = new_rates.cemig_rate if new_rates.cemig_rate is not None else invoice.rates.cemig_rate
    discount = new_rates.discount if new_rates.discount is not None else invoice.rates.discount
    billed_rate = new_rates.billed_rate if new_rates.billed_rate is not None else _billed_rate(cemig_rate, discount)

    logger.info(
        "[invoice] recalculating %s: %s -> cemig_rate=%s discount=%s billed_rate=%s",
        invoice.id, invoice.rates.model_dump(), cemig_rate, discount, billed_rate,
    )

    calc = invoice.calculation
    return invoice.model_copy(
        deep=True,
        update={
            "rates": EnergyRates(cemig_rate=cemig_rate, discount=discount, billed_rate=billed_rate),
            "technical_info": [
                info.model_copy(update={"amount": info.consumption * billed_rate})
                for info in invoice.technical_info
            ],
            "calculation": _calculation(
                total_consumption=calc.total_consumption,
                total_compensation=calc.total_compensation,
                total_received=calc.total_received,
                cemig_rate=cemig_rate,
                billed_rate=billed_rate,
            ),
        },
    )
