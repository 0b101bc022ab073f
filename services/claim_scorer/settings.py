"""Service configuration read from environment variables."""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_PATH = Path(__file__).resolve().parent / "preprocessing_bundle.json"
PAYLOAD_STYLES = ("mlflow_split", "mlflow", "inputs")


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default


class Settings(BaseModel):
    """Runtime settings for the claim scoring service."""

    model_config = ConfigDict(frozen=True)

    bundle_path: Path = DEFAULT_BUNDLE_PATH
    scoring_uri: Optional[str] = None
    scoring_key: Optional[str] = None
    scoring_deployment: Optional[str] = None
    payload_style: str = "mlflow_split"
    scoring_timeout: float = 30.0
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        payload_style = os.getenv("SCORING_PAYLOAD_STYLE", "mlflow_split").strip().lower()
        if payload_style not in PAYLOAD_STYLES:
            logger.warning(
                "Unknown SCORING_PAYLOAD_STYLE=%r, falling back to mlflow_split", payload_style
            )
            payload_style = "mlflow_split"

        return cls(
            bundle_path=Path(os.getenv("BUNDLE_PATH") or DEFAULT_BUNDLE_PATH),
            scoring_uri=os.getenv("SCORING_URI") or None,
            scoring_key=os.getenv("SCORING_KEY") or None,
            scoring_deployment=os.getenv("SCORING_DEPLOYMENT") or None,
            payload_style=payload_style,
            scoring_timeout=_env_number("SCORING_TIMEOUT", 30.0),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(_env_number("PORT", 8000)),
        )
