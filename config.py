import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str = "UTC",
        detection_threshold: float = 0.5,
        partial_match_weight: float = 0.5,
        drop_zero_amount_rows: bool = True,
        suggestion_floor_cents: int = 1000,
        suggestion_round_to_cents: int = 500,
        warning_percent: float = 80.0,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.detection_threshold = detection_threshold
        self.partial_match_weight = partial_match_weight
        self.drop_zero_amount_rows = drop_zero_amount_rows
        self.suggestion_floor_cents = suggestion_floor_cents
        self.suggestion_round_to_cents = suggestion_round_to_cents
        self.warning_percent = warning_percent


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'ledger.db'}"
    return Settings(
        database_url=database_url,
        timezone=os.getenv("LEDGER_TIMEZONE", "UTC"),
        detection_threshold=float(os.getenv("LEDGER_DETECTION_THRESHOLD", "0.5")),
        partial_match_weight=float(os.getenv("LEDGER_PARTIAL_MATCH_WEIGHT", "0.5")),
        drop_zero_amount_rows=_env_flag("LEDGER_DROP_ZERO_AMOUNT_ROWS", "true"),
        suggestion_floor_cents=int(os.getenv("LEDGER_SUGGESTION_FLOOR_CENTS", "1000")),
        suggestion_round_to_cents=int(
            os.getenv("LEDGER_SUGGESTION_ROUND_TO_CENTS", "500")
        ),
        warning_percent=float(os.getenv("LEDGER_WARNING_PERCENT", "80")),
    )
