"""Core configuration with Pydantic v2 Settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_env: str = "development"
    database_url: str = "sqlite:///./tax_compliance.db"
    log_level: str = "INFO"
    enable_metrics: bool = True

    # Plugin key written into every compliance record
    COMPLIANCE_PLUGIN_KEY: str = "tax_compliance_de"

    # Classifier: treat "reverse charge"/"rc" in line descriptions as a
    # reverse-charge hint (explicit tax_category_hint always wins)
    REVERSE_CHARGE_KEYWORD_DETECTION: bool = True

    # External e-invoice conformance validators (optional).
    # Every key may be scoped by EINVOICE_VALIDATOR_ENV, e.g.
    # XRECHNUNG_VALIDATOR_URL_STAGING when EINVOICE_VALIDATOR_ENV=staging.
    EINVOICE_VALIDATOR_ENV: str = ""
    EINVOICE_VALIDATOR_TIMEOUT_SECONDS: int = 30
    XRECHNUNG_VALIDATOR_URL: str = ""
    XRECHNUNG_VALIDATOR_AUTH_HEADER: str = ""
    XRECHNUNG_VALIDATOR_AUTH_TOKEN: str = ""
    ZUGFERD_VALIDATOR_URL: str = ""
    ZUGFERD_VALIDATOR_AUTH_HEADER: str = ""
    ZUGFERD_VALIDATOR_AUTH_TOKEN: str = ""


# Global settings instance
settings = Settings()
