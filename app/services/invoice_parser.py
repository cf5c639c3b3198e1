"""Invoice parsing.

PDF text extraction is delegated to the document-parser service; the
payable fields are then pulled out of the text with label patterns.
"""

import re
from decimal import Decimal, InvalidOperation

import httpx

from app.core.config import DocumentParserConfig, get_settings
from app.core.errors import InvoiceParsingError
from app.core.http_client import get_async_http_client
from app.core.logging import get_logger
from app.core.resilience import CircuitBreaker, CircuitBreakerOpenError
from app.domain.models.invoice import InvoiceBreakdown, ParsedInvoice

logger = get_logger(__name__)

PARSE_FAILED_MESSAGE = "Failed to parse PDF invoice content."

_INVOICE_NUMBER = re.compile(r"Invoice\s*#\s*([A-Z0-9-]+)", re.IGNORECASE)
_INVOICE_NUMBER_BARE = re.compile(r"(INV-[A-Z0-9-]+)")
_TOTAL_DUE = re.compile(r"Total\s*Due[^0-9]*([\d,]+\.?\d{2})", re.IGNORECASE)
_PRINCIPAL = re.compile(r"Principal\s*Amount[^0-9]*([\d,]+\.?\d{2})", re.IGNORECASE)
_SERVICE_CODE = re.compile(r"Service\s*Code:\s*([A-Z0-9-]+)", re.IGNORECASE)
_REFERENCE_CODE = re.compile(r"Reference\s*Code:\s*([A-Z0-9-/]+)", re.IGNORECASE)
_LOAN_CODE = re.compile(r"LOAN-[0-9]+")
_PAYMENT_PIN = re.compile(r"Payment\s*Reference\s*PIN:\s*([A-Z0-9]+)", re.IGNORECASE)


def _parse_money(raw: str) -> Decimal | None:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def _group(pattern: re.Pattern[str], text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1) if match else None


def extract_invoice_fields(text: str) -> ParsedInvoice:
    """Pull invoice fields out of extracted document text.

    Fields that are not found stay ``None``; the breakdown defaults to zeros.
    """
    invoice_number = _group(_INVOICE_NUMBER, text) or _group(_INVOICE_NUMBER_BARE, text)

    total_due = _group(_TOTAL_DUE, text)
    amount = _parse_money(total_due) if total_due else None

    breakdown = InvoiceBreakdown()
    principal = _group(_PRINCIPAL, text)
    if principal:
        breakdown.principal = _parse_money(principal) or Decimal("0")

    loan_match = _LOAN_CODE.search(text)

    return ParsedInvoice(
        invoice_number=invoice_number,
        amount=amount,
        service_code=_group(_SERVICE_CODE, text),
        account_code=_group(_REFERENCE_CODE, text),
        loan_code=loan_match.group(0) if loan_match else None,
        payment_pin=_group(_PAYMENT_PIN, text),
        breakdown=breakdown,
    )


_circuit_breaker: CircuitBreaker | None = None


def get_document_parser_breaker() -> CircuitBreaker:
    global _circuit_breaker
    if _circuit_breaker is None:
        config = get_settings().document_parser
        _circuit_breaker = CircuitBreaker(
            "document-parser",
            failure_threshold=config.failure_threshold,
            timeout_seconds=config.reset_timeout_seconds,
            expected_exception=httpx.HTTPError,
        )
    return _circuit_breaker


class InvoiceParser:
    """Turns uploaded invoice PDFs into ``ParsedInvoice`` values."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: DocumentParserConfig | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.client = client or get_async_http_client()
        self.config = config or get_settings().document_parser
        self.circuit_breaker = circuit_breaker or get_document_parser_breaker()

    async def _extract_text(self, content: bytes, filename: str) -> str:
        response = await self.client.post(
            self.config.extract_text_url,
            files={"file": (filename, content, "application/pdf")},
            timeout=self.config.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Document parser returned {type(payload).__name__}, expected object")
        text = payload.get("text") or ""
        if not isinstance(text, str):
            raise ValueError(f"Document parser returned non-text content: {type(text).__name__}")
        return text

    async def extract_text(self, content: bytes, filename: str = "invoice.pdf") -> str:
        """Get the plain text of a PDF from the document-parser service.

        Raises:
            InvoiceParsingError: service unreachable, failing, or circuit open
        """
        try:
            return await self.circuit_breaker.call(self._extract_text, content, filename)
        except (httpx.HTTPError, CircuitBreakerOpenError, ValueError) as e:
            logger.error("Invoice text extraction failed", error=str(e), filename=filename)
            raise InvoiceParsingError(PARSE_FAILED_MESSAGE) from e

    async def parse(self, content: bytes, filename: str = "invoice.pdf") -> ParsedInvoice:
        text = await self.extract_text(content, filename)
        parsed = extract_invoice_fields(text)
        logger.info(
            "Invoice parsed",
            filename=filename,
            invoice_number=parsed.invoice_number,
            has_amount=parsed.amount is not None,
        )
        return parsed
