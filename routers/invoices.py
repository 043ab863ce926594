# routers/invoices.py
from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from deps import get_current_admin_user
from schemas import InvoiceData, InvoiceGenerateRequest, InvoiceRecalculateRequest
from services.invoice_engine import generate_invoice_data, parse_period, recalculate_invoice
from services.invoice_source import load_energy_records

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post("/generate", response_model=list[InvoiceData])
async def generate_invoices(payload: InvoiceGenerateRequest, user=Depends(get_current_admin_user)):
    for p in payload.periods or []:
        try:
            parse_period(p)
        except ValueError:
            raise HTTPException(422, f"Período inválido: {p!r} (esperado MM/AAAA)")

    records, installations = await load_energy_records(
        distributor_id=payload.distributor_id,
        periods=payload.periods,
        installation_numbers=payload.installation_numbers,
        source=payload.source,
    )
    return generate_invoice_data(
        records,
        installations,
        payload.cemig_rate,
        payload.discount,
        periods=payload.periods,
    )


@router.post("/recalculate", response_model=InvoiceData)
async def recalculate(payload: InvoiceRecalculateRequest, user=Depends(get_current_admin_user)):
    return recalculate_invoice(payload.invoice, payload.rates)
