"""Invoice numbering and persistence.

Invoice numbers are allocated per owner by reading the most recent invoice
and incrementing its numeric suffix. Two concurrent allocations can read
the same predecessor; the (owner_id, invoice_number) unique constraint
rejects the loser, which re-reads and retries a bounded number of times.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from karat.db.models import Customer, FirmProfile, Invoice, InvoiceItem, InvoiceStatus
from karat.errors.domain import InvoiceNumberConflictError
from karat.orchestrator.actions.totals import to_paise
from karat.orchestrator.models.action import CreateInvoicePayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NumberingScheme:
    """How invoice numbers are formatted, e.g. INV-001."""

    prefix: str = "INV"
    padding: int = 3

    @property
    def seed(self) -> str:
        return self.format(1)

    def format(self, sequence: int) -> str:
        return f"{self.prefix}-{sequence:0{self.padding}d}"

    def parse(self, invoice_number: str) -> int | None:
        """Numeric suffix of an invoice number, None if it has none."""
        _, sep, suffix = invoice_number.rpartition("-")
        if not sep or not suffix.isdigit():
            return None
        return int(suffix)


class InvoiceService:
    """Invoice writes for a single owner.

    Attributes:
        db: SQLAlchemy session for database operations.
        scheme: Invoice numbering scheme.
    """

    def __init__(self, db: Session, scheme: NumberingScheme | None = None) -> None:
        self.db = db
        self.scheme = scheme or NumberingScheme()

    def latest_invoice(self, owner_id: str) -> Invoice | None:
        """Most recently created invoice for the owner."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.owner_id == owner_id)
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .first()
        )

    def next_invoice_number(self, owner_id: str) -> str:
        """Allocate the next invoice number for the owner.

        Seeds with e.g. INV-001. If the latest number has no numeric
        suffix, numbering continues from the owner's invoice count.
        """
        latest = self.latest_invoice(owner_id)
        if latest is None:
            return self.scheme.seed

        sequence = self.scheme.parse(latest.invoice_number)
        if sequence is None:
            sequence = (
                self.db.query(Invoice).filter(Invoice.owner_id == owner_id).count()
            )
        return self.scheme.format(sequence + 1)

    def create_invoice(
        self,
        owner_id: str,
        payload: CreateInvoicePayload,
        customer: Customer,
        firm: FirmProfile,
        max_attempts: int = 3,
    ) -> Invoice:
        """Allocate a number and insert the invoice header, committing it.

        ``payload`` must carry validated totals.

        Raises:
            InvoiceNumberConflictError: If every allocation attempt collided.
        """
        for attempt in range(1, max_attempts + 1):
            number = self.next_invoice_number(owner_id)
            invoice = Invoice(
                owner_id=owner_id,
                invoice_number=number,
                customer_id=customer.id,
                status=InvoiceStatus.finalized.value,
                invoice_date=payload.invoice_date.isoformat(),
                customer_name=customer.name,
                customer_phone=customer.phone,
                customer_email=customer.email,
                customer_address=customer.address,
                firm_name=firm.firm_name,
                firm_address=firm.firm_address,
                firm_phone=firm.firm_phone,
                firm_gstin=firm.firm_gstin,
                tax_percentage=payload.tax_percentage,
                subtotal_paise=to_paise(payload.subtotal or Decimal("0")),
                tax_amount_paise=to_paise(payload.tax_amount or Decimal("0")),
                grand_total_paise=to_paise(payload.grand_total or Decimal("0")),
            )
            self.db.add(invoice)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    "Invoice number %s already taken for owner %s (attempt %d/%d)",
                    number,
                    owner_id,
                    attempt,
                    max_attempts,
                )
                continue
            self.db.refresh(invoice)
            return invoice

        raise InvoiceNumberConflictError(owner_id, max_attempts)

    def add_items(self, invoice: Invoice, payload: CreateInvoicePayload) -> list[InvoiceItem]:
        """Insert the invoice's line items and commit."""
        items = [
            InvoiceItem(
                invoice_id=invoice.id,
                position=position,
                name=item.name,
                quantity=item.quantity,
                weight_grams=item.weight,
                price_per_gram_paise=to_paise(item.price_per_gram),
                total_paise=to_paise(item.total or Decimal("0")),
            )
            for position, item in enumerate(payload.items)
        ]
        self.db.add_all(items)
        self.db.commit()
        return items

    def get_for_owner(self, invoice_id: str, owner_id: str) -> Invoice | None:
        """Return the invoice only if it belongs to ``owner_id``."""
        return (
            self.db.query(Invoice)
            .filter(Invoice.id == invoice_id, Invoice.owner_id == owner_id)
            .first()
        )
