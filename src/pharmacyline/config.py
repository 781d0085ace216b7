"""Startup configuration.

Pharmacy facts and service settings are read from the environment once at
startup into frozen dataclasses and injected wherever they are needed.
validate_config() checks that required variables are set before the server
accepts calls, so a missing key fails loudly at boot rather than mid-call.
"""

import os
import sys
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "OPENAI_API_KEY",
]

OPTIONAL_VARS = [
    "OPENAI_MODEL",
    "RECORDS_API_URL",
    "RECORDS_API_KEY",
    "PUBLIC_BASE_URL",
    "PHARMACY_NAME",
    "PHARMACY_HOURS",
    "PHARMACY_ADDRESS",
    "PHARMACY_TRANSFER_PHONE",
    "VOICE_NAME",
    "VOICE_LANGUAGE",
    "LOG_LEVEL",
]


@dataclass(frozen=True)
class PharmacyInfo:
    name: str = "Community Health Pharmacy"
    hours: str = "Monday to Friday: 9am to 7pm, Saturday: 9am to 5pm, Sunday: Closed"
    address: str = "123 Main Street, Anytown, USA"
    transfer_phone: str = "(555) 123-4567"


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    records_api_url: str = ""
    records_api_key: str = ""
    # Prefix for Gather action URLs; empty means relative URLs.
    public_base_url: str = ""
    voice_name: str = "Polly.Joanna"
    voice_language: str = "en-US"


def load_pharmacy_info() -> PharmacyInfo:
    defaults = PharmacyInfo()
    return PharmacyInfo(
        name=os.getenv("PHARMACY_NAME") or defaults.name,
        hours=os.getenv("PHARMACY_HOURS") or defaults.hours,
        address=os.getenv("PHARMACY_ADDRESS") or defaults.address,
        transfer_phone=os.getenv("PHARMACY_TRANSFER_PHONE") or defaults.transfer_phone,
    )


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL") or defaults.openai_model,
        records_api_url=os.getenv("RECORDS_API_URL", ""),
        records_api_key=os.getenv("RECORDS_API_KEY", ""),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
        voice_name=os.getenv("VOICE_NAME") or defaults.voice_name,
        voice_language=os.getenv("VOICE_LANGUAGE") or defaults.voice_language,
    )


def validate_config() -> None:
    """Validate environment variables at startup.

    Exits the process with a clear error if any required variable is missing
    or empty.  Logs warnings for missing optional variables.
    """
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env (local) or in the deployment's secrets.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)
