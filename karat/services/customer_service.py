"""Owner-scoped customer lookups and creation.

Example:
    svc = CustomerService(db)
    customer = svc.create_customer(owner_id, name="Priya", phone="98200 12345")
    db.commit()
"""

import logging
import re

from sqlalchemy.orm import Session

from karat.db.models import Customer

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: str | None) -> str | None:
    """Digits only, keeping the last ten for Indian numbers with a prefix."""
    if not phone:
        return None
    digits = _NON_DIGITS.sub("", phone)
    if not digits:
        return None
    if len(digits) > 10 and digits.startswith(("91", "0")):
        digits = digits[-10:]
    return digits


class CustomerService:
    """Customer CRUD for a single owner's book.

    Methods do NOT call db.commit(); the caller is responsible for committing.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_for_owner(self, customer_id: str, owner_id: str) -> Customer | None:
        """Return the customer only if it belongs to ``owner_id``."""
        return (
            self.db.query(Customer)
            .filter(Customer.id == customer_id, Customer.owner_id == owner_id)
            .first()
        )

    def find_by_phone(self, owner_id: str, phone: str | None) -> Customer | None:
        """Match an existing customer on normalized phone number."""
        normalized = normalize_phone(phone)
        if normalized is None:
            return None
        return (
            self.db.query(Customer)
            .filter(Customer.owner_id == owner_id, Customer.phone == normalized)
            .first()
        )

    def create_customer(
        self,
        owner_id: str,
        name: str,
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
    ) -> Customer:
        """Add a customer and flush so its id is available."""
        customer = Customer(
            owner_id=owner_id,
            name=name.strip(),
            phone=normalize_phone(phone),
            email=email,
            address=address,
        )
        self.db.add(customer)
        self.db.flush()
        logger.info("Created customer %s for owner %s", customer.id, owner_id)
        return customer
