"""Function-call schemas offered to the completion provider.

Every text field is requested in English regardless of the language the
user wrote in. Line totals are deliberately absent from the invoice
schema; they are always computed locally.
"""

from karat.orchestrator.models.action import ActionType
from karat.orchestrator.nl_engine.completion import ToolSpec

_ENGLISH = "Always in English; translate if the user wrote in another language."

CREATE_INVOICE_TOOL = ToolSpec(
    name=ActionType.create_invoice.value,
    description=(
        "Create a sales invoice for a jewelry customer. Extract every detail "
        "the user gave. " + _ENGLISH
    ),
    input_schema={
        "type": "object",
        "properties": {
            "customer": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": f"Customer full name. {_ENGLISH}"},
                    "phone": {"type": "string", "description": "Customer phone number"},
                    "email": {"type": "string", "description": "Customer email"},
                    "address": {"type": "string", "description": f"Customer address. {_ENGLISH}"},
                    "existing_customer_id": {
                        "type": "string",
                        "description": "Id of an existing customer, only if the user referenced one",
                    },
                },
                "required": ["name"],
            },
            "items": {
                "type": "array",
                "description": "Invoice line items",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {
                            "type": "string",
                            "description": f"Item name, e.g. 'Gold Ring 22K'. {_ENGLISH}",
                        },
                        "quantity": {"type": "integer", "minimum": 1},
                        "weight": {
                            "type": "number",
                            "minimum": 0.01,
                            "description": "Weight per piece in grams",
                        },
                        "price_per_gram": {
                            "type": "number",
                            "minimum": 0,
                            "description": "Rate in rupees per gram",
                        },
                    },
                    "required": ["name", "quantity", "weight", "price_per_gram"],
                },
            },
            "tax_percentage": {
                "type": "number",
                "description": "GST percentage, default 3",
            },
            "invoice_date": {
                "type": "string",
                "description": "Invoice date in YYYY-MM-DD, default today",
            },
        },
        "required": ["customer", "items"],
    },
)

ADD_CUSTOMER_TOOL = ToolSpec(
    name=ActionType.add_customer.value,
    description="Add a customer to the shop's customer book. " + _ENGLISH,
    input_schema={
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": f"Customer full name. {_ENGLISH}"},
            "phone": {"type": "string"},
            "email": {"type": "string"},
            "address": {"type": "string", "description": _ENGLISH},
        },
        "required": ["name"],
    },
)

ACTION_TOOLS: dict[ActionType, ToolSpec] = {
    ActionType.create_invoice: CREATE_INVOICE_TOOL,
    ActionType.add_customer: ADD_CUSTOMER_TOOL,
}

EXTRACT_BILL_TOOL = ToolSpec(
    name="extract_purchase_bill",
    description=(
        "Extract structured data from a supplier's purchase bill. "
        "Use YYYY-MM-DD for dates and plain numbers for amounts. " + _ENGLISH
    ),
    input_schema={
        "type": "object",
        "properties": {
            "supplier": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "phone": {"type": "string"},
                    "email": {"type": "string"},
                    "address": {"type": "string"},
                    "gst_number": {"type": "string", "description": "Supplier GSTIN"},
                },
                "required": ["name"],
            },
            "invoice_number": {"type": "string"},
            "invoice_date": {"type": "string", "description": "YYYY-MM-DD"},
            "amount": {"type": "number", "description": "Grand total in rupees"},
            "payment_status": {
                "type": "string",
                "enum": ["Paid", "Unpaid", "Partially Paid"],
            },
            "items": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "quantity": {"type": "number"},
                        "rate": {"type": "number"},
                        "amount": {"type": "number"},
                    },
                    "required": ["name"],
                },
            },
            "number_of_items": {"type": "integer"},
            "tax_amount": {"type": "number"},
            "discount_amount": {"type": "number"},
            "notes": {"type": "string"},
            "confidence": {
                "type": "number",
                "description": "Your confidence in the extraction, 0 to 1",
            },
            "detected_language": {"type": "string"},
        },
        "required": ["supplier", "invoice_number", "invoice_date", "amount"],
    },
)
