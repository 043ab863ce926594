"""End-to-end behaviour of the CEMIG ingestion pipeline against an in-memory database."""

import pytest

from models import BillRecord, Distributor, PermanentEnergyRecord, UploadBatch
from services import processing_strategies
from services.errors import DistributorNotFoundError
from services.processing_strategies import (
    CemigProcessingStrategy,
    get_processing_strategy,
    missing_installations_message,
    normalize_distributor_name,
)

from conftest import cemig_row


async def test_valid_file_writes_bill_and_permanent_records(make_xlsx, cemig, consumer_a100, generator_g300):
    content = make_xlsx([cemig_row("A100"), cemig_row("G300", Consumo=0, **{"Geração": 1500, "Compensação": 0})])

    result = await CemigProcessingStrategy().process(content, "saldo.xlsx", cemig)

    assert result.outcome == "success"
    batch = await UploadBatch.get(id=result.batch.id)
    assert batch.status == "success"
    assert (batch.total_count, batch.processed_count, batch.error_count) == (2, 2, 0)

    bill = await BillRecord.get(installation_id=consumer_a100.id, period="04/2025")
    assert bill.consumption == 1000
    assert bill.compensation == 700
    assert bill.previous_balance == pytest.approx(10.5)
    assert bill.current_balance == pytest.approx(25.75)
    assert bill.quota == 100
    assert bill.modality == "Autoconsumo Remoto"
    assert bill.data_source == "cemig_upload"
    assert str(bill.upload_batch_id) == str(batch.id)

    perm = await PermanentEnergyRecord.get(installation_id=consumer_a100.id, period="04/2025")
    assert perm.installation_number == "A100"
    assert perm.distributor_name == "CEMIG"
    assert perm.installation_type == "CONSUMER"
    assert perm.owner_name == "Maria Souza"
    assert perm.owner_document == "123.456.789-00"
    assert perm.record_source == f"upload_{batch.id}"
    assert perm.consumption == 1000
    assert await PermanentEnergyRecord.all().count() == 2


async def test_unknown_installation_rejects_whole_file(make_xlsx, cemig, consumer_a100):
    content = make_xlsx([cemig_row("A100"), cemig_row("B200")])

    result = await CemigProcessingStrategy().process(content, "saldo.xlsx", cemig)

    assert result.is_fatal
    assert result.error.error_type == "missing_installation"
    assert "B200" in result.error.message
    assert result.error.installation_numbers == ["B200"]

    assert await BillRecord.filter(installation_id=consumer_a100.id, period="04/2025").count() == 0
    assert await PermanentEnergyRecord.all().count() == 0

    batch = await UploadBatch.get(id=result.error.batch_id)
    assert batch.status == "failed"
    assert (batch.total_count, batch.error_count, batch.not_found_count) == (2, 1, 1)
    assert batch.error_details["missing_installations"] == ["B200"]


async def test_installation_of_another_distributor_counts_as_missing(make_xlsx, cemig, consumer_a100):
    other = await Distributor.create(name="Light")
    content = make_xlsx([cemig_row("A100")])

    result = await CemigProcessingStrategy().process(content, "saldo.xlsx", other)

    assert result.is_fatal
    assert result.error.installation_numbers == ["A100"]
    assert await BillRecord.all().count() == 0


async def test_reupload_is_idempotent(make_xlsx, cemig, consumer_a100):
    content = make_xlsx([cemig_row("A100")])
    strategy = CemigProcessingStrategy()

    first = await strategy.process(content, "saldo.xlsx", cemig)
    second = await strategy.process(content, "saldo.xlsx", cemig)

    assert first.outcome == second.outcome == "success"
    assert await BillRecord.filter(installation_id=consumer_a100.id, period="04/2025").count() == 1
    assert await PermanentEnergyRecord.filter(installation_id=consumer_a100.id, period="04/2025").count() == 1
    # skip-duplicate, not overwrite: the first batch still owns the row
    bill = await BillRecord.get(installation_id=consumer_a100.id, period="04/2025")
    assert str(bill.upload_batch_id) == str(first.batch.id)


async def test_reupload_with_changed_values_does_not_overwrite(make_xlsx, cemig, consumer_a100):
    strategy = CemigProcessingStrategy()
    await strategy.process(make_xlsx([cemig_row("A100")]), "v1.xlsx", cemig)
    await strategy.process(make_xlsx([cemig_row("A100", Consumo=5000)]), "v2.xlsx", cemig)

    bill = await BillRecord.get(installation_id=consumer_a100.id, period="04/2025")
    assert bill.consumption == 1000


async def test_rows_without_period_or_number_are_counted_and_skipped(make_xlsx, cemig, consumer_a100):
    rows = [
        cemig_row("A100"),
        cemig_row("A100", period=None),
        cemig_row(None, period="05/2025"),
    ]

    result = await CemigProcessingStrategy().process(make_xlsx(rows), "saldo.xlsx", cemig)

    assert result.outcome == "success"
    batch = await UploadBatch.get(id=result.batch.id)
    assert (batch.total_count, batch.processed_count, batch.error_count) == (3, 1, 2)
    assert await BillRecord.all().count() == 1


async def test_file_with_no_usable_rows_marks_batch_failed(make_xlsx, cemig, consumer_a100):
    result = await CemigProcessingStrategy().process(
        make_xlsx([cemig_row("A100", period=None)]), "saldo.xlsx", cemig,
    )

    assert not result.is_fatal
    assert (await UploadBatch.get(id=result.batch.id)).status == "failed"


async def test_numeric_installation_numbers_match(make_xlsx, cemig):
    from models import Installation
    inst = await Installation.create(installation_number="3012345678", type="CONSUMER", distributor=cemig)

    result = await CemigProcessingStrategy().process(make_xlsx([cemig_row(3012345678)]), "saldo.xlsx", cemig)

    assert result.outcome == "success"
    assert await BillRecord.filter(installation_id=inst.id).count() == 1


async def test_empty_file_is_format_error_without_batch(make_xlsx, cemig):
    content = make_xlsx([], columns=["Instalação", "Período"])

    result = await CemigProcessingStrategy().process(content, "vazio.xlsx", cemig)

    assert result.is_fatal
    assert result.error.error_type == "invalid_format"
    assert await UploadBatch.all().count() == 0


async def test_bulk_insert_failure_is_fatal_and_leaves_batch_processing(make_xlsx, cemig, consumer_a100, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(BillRecord, "bulk_create", boom)

    result = await CemigProcessingStrategy().process(make_xlsx([cemig_row("A100")]), "saldo.xlsx", cemig)

    assert result.is_fatal
    assert result.error.error_type == "other"
    assert "disk full" in result.error.message
    batch = await UploadBatch.get(id=result.error.batch_id)
    assert batch.status == "processing"
    assert batch.completed_at is None
    assert await PermanentEnergyRecord.all().count() == 0


async def test_mirror_failure_is_degraded_not_fatal(make_xlsx, cemig, consumer_a100, monkeypatch):
    async def boom(records, batch):
        raise RuntimeError("history table locked")

    monkeypatch.setattr(processing_strategies, "mirror_bill_records", boom)

    result = await CemigProcessingStrategy().process(make_xlsx([cemig_row("A100")]), "saldo.xlsx", cemig)

    assert result.outcome == "degraded"
    assert "history table locked" in result.warnings[0]
    assert (await UploadBatch.get(id=result.batch.id)).status == "success"
    assert await BillRecord.all().count() == 1
    assert await PermanentEnergyRecord.all().count() == 0


def test_missing_message_names_first_ten_and_counts_the_rest():
    missing = [f"N{i:02d}" for i in range(13)]
    msg = missing_installations_message(missing)
    assert "N00" in msg and "N09" in msg
    assert "N10" not in msg
    assert "e mais 3" in msg


@pytest.mark.parametrize("name, expected", [
    ("CEMIG", "cemig"),
    ("Cemig Distribuição S.A.", "cemig distribuicao s a"),
    ("  Energisa-MG ", "energisa mg"),
])
def test_normalize_distributor_name(name, expected):
    assert normalize_distributor_name(name) == expected


async def test_factory_picks_cemig_strategy(cemig):
    strategy, distributor = await get_processing_strategy(cemig.id)
    assert isinstance(strategy, CemigProcessingStrategy)
    assert distributor.id == cemig.id


async def test_factory_matches_name_token(db):
    d = await Distributor.create(name="Cemig Distribuição S.A.")
    strategy, _ = await get_processing_strategy(d.id)
    assert isinstance(strategy, CemigProcessingStrategy)


async def test_factory_falls_back_to_default_with_warning(db, caplog):
    d = await Distributor.create(name="Energisa")
    with caplog.at_level("WARNING"):
        strategy, _ = await get_processing_strategy(d.id)
    assert isinstance(strategy, processing_strategies.DEFAULT_STRATEGY)
    assert "Energisa" in caplog.text


async def test_factory_unknown_distributor(db):
    with pytest.raises(DistributorNotFoundError):
        await get_processing_strategy(999)
