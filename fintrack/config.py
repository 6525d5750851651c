import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from fintrack.domain import DEFAULT_NOTIFY_MS
from fintrack.policy import PROTECTED_MINIMUM

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    min_balance: float = PROTECTED_MINIMUM
    data_dir: str = "data"
    record_bill_payments: bool = False  # False keeps autopay out of the transaction log
    notify_ms: int = DEFAULT_NOTIFY_MS
    currency: str = "₹"
    log_level: str = "INFO"


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, using default %r", name, raw, default)
        return default


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from the environment (and a .env file, if present)."""
    if dotenv:
        load_dotenv()

    return Settings(
        min_balance=_number("FINTRACK_MIN_BALANCE", PROTECTED_MINIMUM, float),
        data_dir=os.getenv("FINTRACK_DATA_DIR", "data"),
        record_bill_payments=os.getenv("FINTRACK_RECORD_BILL_PAYMENTS", "false").strip().lower() in TRUTHY,
        notify_ms=_number("FINTRACK_NOTIFY_MS", DEFAULT_NOTIFY_MS, int),
        currency=os.getenv("FINTRACK_CURRENCY", "₹"),
        log_level=os.getenv("FINTRACK_LOG_LEVEL", "INFO").upper(),
    )
