"""E-Rechnung: Generator, Strukturvalidator und externer Konformitäts-Check."""

from .dto import EInvoiceLine, EInvoicePayload, EInvoiceValidationResult, quantize_amount
from .external import (
    ExternalValidatorConfig,
    ExternalValidatorError,
    load_validator_config,
    run_external_validator,
)
from .generator import build_einvoice_xml, version
from .profiles import (
    EINVOICE_FORMATS,
    EINVOICE_MIME,
    XRECHNUNG,
    XRECHNUNG_SPECIFICATION_ID,
    ZUGFERD,
    ZUGFERD_DOCUMENT_CONTEXT,
    ZUGFERD_PROFILE,
    normalize_format,
)
from .validator import validate_einvoice

__all__ = [
    "EInvoiceLine",
    "EInvoicePayload",
    "EInvoiceValidationResult",
    "quantize_amount",
    "ExternalValidatorConfig",
    "ExternalValidatorError",
    "load_validator_config",
    "run_external_validator",
    "build_einvoice_xml",
    "version",
    "EINVOICE_FORMATS",
    "EINVOICE_MIME",
    "XRECHNUNG",
    "XRECHNUNG_SPECIFICATION_ID",
    "ZUGFERD",
    "ZUGFERD_DOCUMENT_CONTEXT",
    "ZUGFERD_PROFILE",
    "normalize_format",
    "validate_einvoice",
]
