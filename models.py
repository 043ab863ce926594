from tortoise import fields, models
import uuid


# -------- Users --------
class User(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    username = fields.CharField(max_length=50, unique=True, index=True)
    email = fields.CharField(max_length=100, unique=True, index=True)
    hashed_password = fields.CharField(max_length=128)
    disabled = fields.BooleanField(default=False)
    role = fields.CharField(max_length=32, default="CUSTOMER", index=True)  # ADMIN / SUPER_ADMIN / ADMIN_STAFF / CUSTOMER ...

    class Meta:
        table = "users"

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


# -------- Registry (managed by the admin flows) --------
class Distributor(models.Model):
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=200, unique=True, index=True)  # e.g. "CEMIG"
    code = fields.CharField(max_length=64, null=True, index=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "distributors"

    def __str__(self) -> str:
        return self.name


class Customer(models.Model):
    """Installation owner (customer or renter)."""
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=200, index=True)
    document = fields.CharField(max_length=32, null=True, index=True)  # CPF / CNPJ
    email = fields.CharField(max_length=100, null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "customers"

    def __str__(self) -> str:
        return self.name


class Installation(models.Model):
    id = fields.IntField(pk=True)
    installation_number = fields.CharField(max_length=64, index=True)
    type = fields.CharField(max_length=16, default="CONSUMER", index=True)  # GENERATOR | CONSUMER
    distributor = fields.ForeignKeyField("models.Distributor", related_name="installations",
                                         on_delete=fields.RESTRICT, index=True)
    owner = fields.ForeignKeyField("models.Customer", null=True, related_name="installations",
                                   on_delete=fields.SET_NULL, index=True)
    status = fields.CharField(max_length=16, default="ACTIVE", index=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    updated_at = fields.DatetimeField(auto_now=True, index=True)

    class Meta:
        table = "installations"
        unique_together = ("installation_number", "distributor")

    def __str__(self) -> str:
        return self.installation_number


# ========================
# Ingestion
# ========================
class UploadBatch(models.Model):
    """One ingestion attempt for one uploaded spreadsheet."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    file_name = fields.CharField(max_length=255)
    distributor = fields.ForeignKeyField("models.Distributor", related_name="upload_batches",
                                         on_delete=fields.RESTRICT, index=True)
    status = fields.CharField(max_length=16, default="processing", index=True)  # processing | success | failed
    total_count = fields.IntField(default=0)
    processed_count = fields.IntField(default=0)
    error_count = fields.IntField(default=0)
    not_found_count = fields.IntField(default=0)
    processing_type = fields.CharField(max_length=32, default="cemig")
    error_details = fields.JSONField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)
    completed_at = fields.DatetimeField(null=True, index=True)

    class Meta:
        table = "upload_batches"


class BillRecord(models.Model):
    """Readings of one installation for one period (MM/YYYY)."""
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    installation = fields.ForeignKeyField("models.Installation", related_name="bill_records",
                                          on_delete=fields.CASCADE, index=True)
    upload_batch = fields.ForeignKeyField("models.UploadBatch", null=True, related_name="bill_records",
                                          on_delete=fields.SET_NULL, index=True)
    period = fields.CharField(max_length=16, index=True)

    modality = fields.CharField(max_length=128, null=True)
    quota = fields.FloatField(null=True)
    tariff_post = fields.CharField(max_length=64, null=True)
    previous_balance = fields.FloatField(null=True)
    expired_balance = fields.FloatField(null=True)
    consumption = fields.FloatField(null=True)
    generation = fields.FloatField(null=True)
    compensation = fields.FloatField(null=True)
    transferred = fields.FloatField(null=True)
    received = fields.FloatField(null=True)
    current_balance = fields.FloatField(null=True)
    expiring_balance_amount = fields.FloatField(null=True)
    expiring_balance_period = fields.CharField(max_length=32, null=True)

    data_source = fields.CharField(max_length=64, default="cemig_upload")
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "bill_records"
        unique_together = ("installation", "period")


class PermanentEnergyRecord(models.Model):
    """
    Append-only, denormalized copy of a BillRecord.
    Plain ids (no FKs) so the row outlives its installation / owner / distributor.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    installation_id = fields.IntField(index=True)
    installation_number = fields.CharField(max_length=64, index=True)
    installation_type = fields.CharField(max_length=16, null=True)
    distributor_id = fields.IntField(null=True, index=True)
    distributor_name = fields.CharField(max_length=200, null=True)
    owner_id = fields.IntField(null=True, index=True)
    owner_name = fields.CharField(max_length=200, null=True)
    owner_document = fields.CharField(max_length=32, null=True)
    upload_batch_id = fields.CharField(max_length=64, null=True, index=True)
    record_source = fields.CharField(max_length=96, index=True)  # upload_<batchId>
    period = fields.CharField(max_length=16, index=True)

    modality = fields.CharField(max_length=128, null=True)
    quota = fields.FloatField(null=True)
    tariff_post = fields.CharField(max_length=64, null=True)
    previous_balance = fields.FloatField(null=True)
    expired_balance = fields.FloatField(null=True)
    consumption = fields.FloatField(null=True)
    generation = fields.FloatField(null=True)
    compensation = fields.FloatField(null=True)
    transferred = fields.FloatField(null=True)
    received = fields.FloatField(null=True)
    current_balance = fields.FloatField(null=True)
    expiring_balance_amount = fields.FloatField(null=True)
    expiring_balance_period = fields.CharField(max_length=32, null=True)

    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        table = "permanent_energy_records"
        unique_together = ("installation_id", "period")
