import uuid
from datetime import datetime, date
from typing import Optional, Literal, Dict, List, Any
from pydantic import BaseModel, ConfigDict, Field

from services import config


# =========================
# Ingestion
# =========================
class UploadBatchRead(BaseModel):
    id: uuid.UUID
    file_name: str
    distributor_id: int
    status: str
    total_count: int
    processed_count: int
    error_count: int
    not_found_count: int
    processing_type: str
    error_details: Optional[Dict[str, Any]] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class UploadResult(BaseModel):
    success: bool = True
    message: str
    batch: UploadBatchRead
    warnings: List[str] = Field(default_factory=list)


class UploadErrorDetail(BaseModel):
    type: Literal["missing_installation", "invalid_format", "other"]
    message: str
    installation_numbers: List[str] = Field(default_factory=list)
    batch_id: Optional[str] = None


class UploadHistoryItem(BaseModel):
    id: uuid.UUID
    distributor_id: int
    distributor_name: str
    file_name: str
    status: Literal["completed", "processing", "error"]
    uploaded_at: datetime
    total_items: int
    processed_items: int
    error_count: int
    not_found_count: int


class PermanentEnergyRecordRead(BaseModel):
    id: uuid.UUID
    installation_id: int
    installation_number: str
    installation_type: Optional[str] = None
    distributor_id: Optional[int] = None
    distributor_name: Optional[str] = None
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    owner_document: Optional[str] = None
    record_source: str
    period: str
    consumption: Optional[float] = None
    generation: Optional[float] = None
    compensation: Optional[float] = None
    transferred: Optional[float] = None
    received: Optional[float] = None
    current_balance: Optional[float] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# =========================
# Invoicing
# =========================
class EnergyRecord(BaseModel):
    """Minimal reading shape the invoice engine works on."""
    installation_number: str
    distributor_id: Optional[int] = None
    type: str  # GENERATOR | CONSUMER
    period: str  # MM/YYYY
    quota: float = 0.0
    consumption: Optional[float] = None
    generation: Optional[float] = None
    compensation: Optional[float] = None
    transferred: Optional[float] = None
    received: Optional[float] = None
    previous_balance: Optional[float] = None
    current_balance: Optional[float] = None
    expiring_amount: Optional[float] = None
    expiration_period: Optional[str] = None


class InstallationSummary(BaseModel):
    id: int
    installation_number: str
    distributor_id: Optional[int] = None
    type: str
    owner_id: Optional[int] = None
    owner_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class EnergyRates(BaseModel):
    cemig_rate: float
    discount: float
    billed_rate: float


class RateOverride(BaseModel):
    cemig_rate: Optional[float] = None
    discount: Optional[float] = None
    billed_rate: Optional[float] = None


class InstallationInfo(BaseModel):
    id: str
    name: Optional[str] = None
    type: Literal["geradora", "consumidora"]
    quota: float
    installation_number: Optional[str] = None


class TechnicalInfo(BaseModel):
    reference: str
    installation: str
    consumption: float
    compensation: float
    reception: float
    current_balance: float
    amount: float


class EnergyHistoryItem(BaseModel):
    period: str
    consumption: float
    compensation: float


class InvoiceCalculation(BaseModel):
    total_consumption: float
    total_compensation: float
    total_received: float = 0.0
    original_amount: float
    compensated_amount: float
    final_amount: float
    saved_amount: float
    co2_avoided: float


class ClientInfo(BaseModel):
    id: str
    name: str


class PeriodInfo(BaseModel):
    reference: str  # MM/YYYY
    start: date
    end: date


class InvoiceData(BaseModel):
    id: str
    invoice_number: str
    client: ClientInfo
    period: PeriodInfo
    due_date: date
    rates: EnergyRates
    installations: List[InstallationInfo]
    technical_info: List[TechnicalInfo]
    history: List[EnergyHistoryItem]
    calculation: InvoiceCalculation
    status: Literal["pending", "paid", "overdue", "canceled"] = "pending"


class InvoiceGenerateRequest(BaseModel):
    distributor_id: Optional[int] = None
    periods: Optional[List[str]] = None
    installation_numbers: Optional[List[str]] = None
    cemig_rate: float = config.DEFAULT_CEMIG_RATE
    discount: float = Field(default=config.DEFAULT_DISCOUNT, ge=0, le=1)
    source: Literal["bill_records", "permanent_records"] = "bill_records"


class InvoiceRecalculateRequest(BaseModel):
    invoice: InvoiceData
    rates: RateOverride
