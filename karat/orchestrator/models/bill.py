"""Purchase-bill extraction models."""

from typing import Literal

from pydantic import BaseModel, Field

# A bill failing on any of these is treated as not a bill at all
MAJOR_BILL_FIELDS = frozenset({"invoice_number", "amount", "invoice_date"})


class BillSupplier(BaseModel):
    """Supplier block printed on a purchase bill."""

    name: str = Field(..., min_length=1, description="Supplier/vendor name")
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    gst_number: str | None = Field(default=None, description="Supplier GSTIN")


class BillItem(BaseModel):
    """Line item on a purchase bill."""

    name: str = Field(..., min_length=1)
    quantity: float | None = None
    rate: float | None = None
    amount: float | None = None


class PurchaseBill(BaseModel):
    """Structured purchase bill extracted from an image or PDF."""

    supplier: BillSupplier
    invoice_number: str = Field(..., min_length=1)
    invoice_date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    amount: float = Field(..., gt=0, description="Total amount in rupees")
    payment_status: Literal["Paid", "Unpaid", "Partially Paid"] = "Unpaid"
    items: list[BillItem] | None = None
    number_of_items: int | None = Field(default=None, ge=0)
    tax_amount: float | None = Field(default=None, ge=0)
    discount_amount: float | None = Field(default=None, ge=0)
    notes: str | None = None
    confidence: float = Field(default=0.8, ge=0, le=1)
    detected_language: str | None = None
