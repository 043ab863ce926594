"""Shared pytest fixtures: in-memory Tortoise database and spreadsheet builders."""

from __future__ import annotations

import io
from typing import Any, Callable, Dict, List

import pandas as pd
import pytest
from tortoise import Tortoise

from models import Customer, Distributor, Installation


@pytest.fixture
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": ["models"]})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
async def cemig(db) -> Distributor:
    return await Distributor.create(name="CEMIG", code="D1")


@pytest.fixture
async def owner(db) -> Customer:
    return await Customer.create(name="Maria Souza", document="123.456.789-00", email="maria@example.com")


@pytest.fixture
async def consumer_a100(cemig, owner) -> Installation:
    return await Installation.create(installation_number="A100", type="CONSUMER", distributor=cemig, owner=owner)


@pytest.fixture
async def generator_g300(cemig) -> Installation:
    return await Installation.create(installation_number="G300", type="GENERATOR", distributor=cemig)


def cemig_row(installation: Any, period: Any = "04/2025", **overrides: Any) -> Dict[str, Any]:
    """One row of a CEMIG 'Consulta Saldo GD' sheet with Portuguese headers."""
    row = {
        "Instalação": installation,
        "Período": period,
        "Modalidade": "Autoconsumo Remoto",
        "Quota": "100",
        "Posto Horário": "Único",
        "Saldo Anterior": "10,5",
        "Saldo Expirado": 0,
        "Consumo": 1000,
        "Geração": 0,
        "Compensação": 700,
        "Transferido": 0,
        "Recebimento": 700,
        "Saldo Atual": "25,75",
        "Quantidade Saldo a Expirar": 0,
        "Período Saldo a Expirar": "",
    }
    row.update(overrides)
    return row


@pytest.fixture
def make_xlsx() -> Callable[[List[Dict[str, Any]]], bytes]:
    def _make(rows: List[Dict[str, Any]], columns: List[str] | None = None) -> bytes:
        buf = io.BytesIO()
        df = pd.DataFrame(rows, columns=columns)
        df.to_excel(buf, index=False, engine="openpyxl")
        return buf.getvalue()
    return _make
