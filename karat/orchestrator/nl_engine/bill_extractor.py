"""Purchase-bill extraction from an image or PDF.

Forces the provider to call ``extract_purchase_bill`` on the uploaded
document and validates the arguments against ``PurchaseBill``.
"""

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from karat.orchestrator.models.bill import MAJOR_BILL_FIELDS, PurchaseBill
from karat.orchestrator.nl_engine.completion import (
    Attachment,
    CompletionMessage,
    CompletionProvider,
    StructuredCall,
)
from karat.orchestrator.nl_engine.intent_extractor import ExtractionTimeoutError
from karat.orchestrator.nl_engine.schemas import EXTRACT_BILL_TOOL

logger = logging.getLogger(__name__)

BILL_SYSTEM_PROMPT = """You read supplier purchase bills for an Indian jewelry shop.

Extract the supplier, bill number, bill date, total amount, payment status,
line items, tax and discount. Dates must be YYYY-MM-DD. Amounts are plain
numbers in rupees. Translate every text field to English and report the
language the bill was printed in. If the document is not a bill, still call
the function but leave fields you cannot find empty and set confidence low."""


class BillExtractionOutcome(BaseModel):
    """Result of one bill extraction.

    ``failed_fields`` lists top-level fields that failed validation;
    ``is_major_failure`` is set when any of them is a major bill field.
    """

    success: bool
    bill: PurchaseBill | None = None
    raw: dict[str, Any] = Field(default_factory=dict)
    failed_fields: list[str] = Field(default_factory=list)
    is_major_failure: bool = False
    tokens_used: int = 0


class BillExtractor:
    """Extracts a PurchaseBill from uploaded document bytes."""

    def __init__(self, provider: CompletionProvider, timeout_seconds: float = 30.0) -> None:
        self._provider = provider
        self._timeout_seconds = timeout_seconds

    async def extract(self, content: bytes, media_type: str) -> BillExtractionOutcome:
        """Run extraction on one document.

        Raises:
            ExtractionTimeoutError: If the provider exceeds the timeout.
            CompletionProviderError: If the provider call fails.
        """
        message = CompletionMessage(
            role="user",
            content="Extract the purchase bill details from this document.",
            attachments=[Attachment(media_type=media_type, data=content)],
        )
        try:
            result = await asyncio.wait_for(
                self._provider.complete(
                    BILL_SYSTEM_PROMPT,
                    [message],
                    [EXTRACT_BILL_TOOL],
                    force_tool=EXTRACT_BILL_TOOL.name,
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ExtractionTimeoutError(self._timeout_seconds) from e

        if not isinstance(result, StructuredCall):
            logger.info("Bill extraction returned no structured data")
            return BillExtractionOutcome(
                success=False,
                failed_fields=sorted(MAJOR_BILL_FIELDS),
                is_major_failure=True,
                tokens_used=result.tokens_used,
            )

        try:
            bill = PurchaseBill.model_validate(result.arguments)
        except PydanticValidationError as e:
            failed = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            is_major = bool(MAJOR_BILL_FIELDS.intersection(failed))
            logger.info(
                "Bill extraction failed validation: fields=%s major=%s", failed, is_major
            )
            return BillExtractionOutcome(
                success=False,
                raw=result.arguments,
                failed_fields=failed,
                is_major_failure=is_major,
                tokens_used=result.tokens_used,
            )

        return BillExtractionOutcome(
            success=True,
            bill=bill,
            raw=result.arguments,
            tokens_used=result.tokens_used,
        )
