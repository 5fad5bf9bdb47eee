"""FastAPI route for purchase-bill extraction.

Accepts a photographed or scanned supplier bill, extracts its fields
through the completion provider and returns them for review. Nothing is
written to the purchase ledger here; the caller saves the reviewed bill.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from karat.api.dependencies import get_app_config, get_completion_provider
from karat.api.middleware.auth import require_owner_id
from karat.api.schemas import BillExtractionResponse
from karat.config import KaratConfig
from karat.db.connection import get_db
from karat.errors.formatter import KaratError
from karat.orchestrator.nl_engine.bill_extractor import BillExtractor
from karat.orchestrator.nl_engine.completion import (
    CompletionProvider,
    CompletionProviderError,
)
from karat.orchestrator.nl_engine.intent_extractor import ExtractionTimeoutError
from karat.services.audit_service import AuditService
from karat.utils.redaction import redact_for_logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["bills"])

INVALID_BILL_DOCUMENT = "INVALID_BILL_DOCUMENT"
BILL_NEEDS_REVIEW = "BILL_NEEDS_REVIEW"


@router.post("/extract", response_model=BillExtractionResponse)
async def extract_bill(
    image: UploadFile = File(...),
    owner_id: str = Depends(require_owner_id),
    provider: CompletionProvider = Depends(get_completion_provider),
    config: KaratConfig = Depends(get_app_config),
    db: Session = Depends(get_db),
) -> BillExtractionResponse | JSONResponse:
    """Extract supplier, number, date and amount from an uploaded bill.

    Returns 422 with INVALID_BILL_DOCUMENT when a major field (invoice
    number, amount, date) could not be read, else BILL_NEEDS_REVIEW.
    """
    bills = config.bills
    media_type = (image.content_type or "").lower()
    if media_type not in bills.allowed_mime_types:
        logger.info("Rejected bill upload with type %s", media_type)
        raise KaratError.from_code("E-1004", mime_type=media_type or "unknown")

    content = await image.read(bills.max_upload_bytes + 1)
    if len(content) > bills.max_upload_bytes:
        raise KaratError.from_code(
            "E-1005", limit_mb=bills.max_upload_bytes // (1024 * 1024)
        )

    logger.info(
        "Bill extraction started: owner=%s type=%s size=%d",
        owner_id,
        media_type,
        len(content),
    )
    extractor = BillExtractor(provider, timeout_seconds=config.completion.timeout_seconds)
    try:
        outcome = await extractor.extract(content, media_type)
    except ExtractionTimeoutError:
        raise KaratError.from_code("E-3002")
    except CompletionProviderError as e:
        logger.warning("Bill extraction provider failure: %s", e)
        raise KaratError.from_code("E-3003" if e.rate_limited else "E-3001")

    audit = AuditService(db)
    if not outcome.success:
        code = INVALID_BILL_DOCUMENT if outcome.is_major_failure else BILL_NEEDS_REVIEW
        error = KaratError.from_code("E-2004" if outcome.is_major_failure else "E-2005")
        logger.info("Bill extraction rejected (%s): %s", code, redact_for_logging(outcome.raw))
        audit.record(
            actor_id=owner_id,
            action_name="bill_extraction",
            entity_type="bill_extraction",
            metadata={"file_name": image.filename, "failed_fields": outcome.failed_fields},
            success=False,
        )
        return JSONResponse(
            status_code=422,
            content={
                "error": error.message,
                "code": code,
                "error_code": error.code,
                "remediation": error.remediation,
                "failed_fields": outcome.failed_fields,
            },
        )

    bill = outcome.bill
    audit.record(
        actor_id=owner_id,
        action_name="bill_extraction",
        entity_type="bill_extraction",
        metadata={
            "file_name": image.filename,
            "invoice_number": bill.invoice_number,
            "confidence": bill.confidence,
            "detected_language": bill.detected_language,
        },
    )
    return BillExtractionResponse(data=bill, tokens_used=outcome.tokens_used)
