"""Test helpers for the Karat test suite."""

from tests.helpers.factories import OTHER_OWNER_ID, OWNER_ID, make_firm_profile
from tests.helpers.fake_provider import (
    FakeCompletionProvider,
    invoice_call,
    priya_invoice_arguments,
    ram_invoice_arguments,
)

__all__ = [
    "FakeCompletionProvider",
    "OTHER_OWNER_ID",
    "OWNER_ID",
    "invoice_call",
    "make_firm_profile",
    "priya_invoice_arguments",
    "ram_invoice_arguments",
]
