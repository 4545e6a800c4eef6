"""Externer Konformitäts-Validator (KoSIT/Mustang o. ä.) per HTTP.

Die URL, der Auth-Header und das Token werden pro Format konfiguriert,
optional pro Umgebung: mit ``EINVOICE_VALIDATOR_ENV=staging`` gewinnt
``XRECHNUNG_VALIDATOR_URL_STAGING`` vor ``XRECHNUNG_VALIDATOR_URL``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from backend.core.config import Settings, settings as default_settings

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_AUTH_HEADER = "Authorization"


class ExternalValidatorError(RuntimeError):
    def __init__(self, code: str, detail: str = "") -> None:
        super().__init__(f"{code}:{detail}" if detail else code)
        self.code = code
        self.detail = detail


@dataclass(frozen=True, slots=True)
class ExternalValidatorConfig:
    format: str
    url: Optional[str]
    auth_header: Optional[str] = None
    auth_token: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    environment: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)


def resolve_setting(
    base_key: str,
    environment: Optional[str],
    *,
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """Scoped lookup: ``KEY_<ENV>`` (environment) first, then ``KEY``.

    The unscoped key is read from the environment and then from ``settings``.
    Blank values count as unset.
    """

    env = os.environ if environ is None else environ
    if environment and environment.strip():
        scoped = (env.get(f"{base_key}_{environment.strip().upper()}") or "").strip()
        if scoped:
            return scoped
    value = (env.get(base_key) or "").strip()
    if value:
        return value
    if settings is not None:
        fallback = str(getattr(settings, base_key, "") or "").strip()
        if fallback:
            return fallback
    return None


def load_validator_config(
    format_name: str,
    *,
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
) -> ExternalValidatorConfig:
    cfg = default_settings if settings is None else settings
    environment = resolve_setting("EINVOICE_VALIDATOR_ENV", None, environ=environ, settings=cfg)
    raw_timeout = resolve_setting(
        "EINVOICE_VALIDATOR_TIMEOUT_SECONDS", environment, environ=environ, settings=cfg
    )
    try:
        timeout = int(raw_timeout) if raw_timeout is not None else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        timeout = DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT_SECONDS

    prefix = f"{format_name.upper()}_VALIDATOR"
    return ExternalValidatorConfig(
        format=format_name,
        url=resolve_setting(f"{prefix}_URL", environment, environ=environ, settings=cfg),
        auth_header=resolve_setting(f"{prefix}_AUTH_HEADER", environment, environ=environ, settings=cfg),
        auth_token=resolve_setting(f"{prefix}_AUTH_TOKEN", environment, environ=environ, settings=cfg),
        timeout_seconds=timeout,
        environment=environment,
    )


def build_headers(config: ExternalValidatorConfig) -> dict[str, str]:
    headers = {"Content-Type": "application/xml", "Accept": "application/json"}
    if config.auth_token:
        headers[config.auth_header or DEFAULT_AUTH_HEADER] = config.auth_token
    return headers


def run_external_validator(
    config: ExternalValidatorConfig,
    xml_content: str,
    *,
    client: Optional[httpx.Client] = None,
) -> Any:
    """POST ``xml_content`` to the configured validator.

    Raises ``ExternalValidatorError`` on transport failure, non-2xx status or
    an explicit ``valid``/``isValid`` false in the JSON body; returns the
    decoded body (or ``None`` for non-JSON responses) otherwise.
    """

    if not config.url:
        raise ExternalValidatorError(f"{config.format}_validator_not_configured")

    owns_client = client is None
    http = client or httpx.Client(timeout=httpx.Timeout(float(config.timeout_seconds)), follow_redirects=False)
    try:
        try:
            resp = http.post(config.url, headers=build_headers(config), content=xml_content.encode("utf-8"))
        except httpx.HTTPError as exc:
            raise ExternalValidatorError(f"{config.format}_validator_request_failed", str(exc)) from exc
    finally:
        if owns_client:
            http.close()

    if resp.status_code < 200 or resp.status_code >= 300:
        raise ExternalValidatorError(f"{config.format}_validator_http_{resp.status_code}", resp.text)

    try:
        decoded = resp.json()
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(decoded, dict):
        verdict = decoded.get("valid")
        if verdict is None:
            verdict = decoded.get("isValid")
        if verdict is False:
            raise ExternalValidatorError(
                f"{config.format}_validator_rejected", json.dumps(decoded, sort_keys=True)
            )
    return decoded
