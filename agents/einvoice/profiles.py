"""Profile der strukturierten E-Rechnung (XRechnung 3.0, ZUGFeRD EN16931)."""

from __future__ import annotations

from typing import Optional

XRECHNUNG = "xrechnung"
ZUGFERD = "zugferd"
EINVOICE_FORMATS: tuple[str, ...] = (XRECHNUNG, ZUGFERD)

XRECHNUNG_SPECIFICATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0"
ZUGFERD_PROFILE = "EN16931"
ZUGFERD_DOCUMENT_CONTEXT = "urn:cen.eu:en16931:2017"

EINVOICE_MIME = "application/xml"


def normalize_format(value: Optional[str], *, default: Optional[str] = None) -> Optional[str]:
    """Lower-case and trim ``value``; ``None`` if it is not a known format."""
    candidate = (value or "").strip().lower() or (default or "")
    return candidate if candidate in EINVOICE_FORMATS else None
