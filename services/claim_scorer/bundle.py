"""Preprocessing bundle: feature order, label encoders and scaler statistics.

The bundle is exported at training time and loaded once when the service
starts. It is never mutated afterwards and is shared by every request.
"""

import hashlib
import json
import logging
import math
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import ConfigurationError
from normalizer import unmapped_fields
from validator import DEFAULT_MISMATCH_THRESHOLD

logger = logging.getLogger(__name__)

# Reserved mapping key some encoder exports use for unseen categories.
UNKNOWN_SENTINEL = "__UNK__"


def _statistic(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return float(value)
    except OverflowError:
        return None


class LabelEncoding(BaseModel):
    """Training-time category -> index table for one feature."""

    model_config = ConfigDict(frozen=True)

    mapping: Dict[str, int] = Field(default_factory=dict)
    unknown_index: Optional[int] = None

    @field_validator("mapping", mode="before")
    @classmethod
    def _null_mapping(cls, value: Any) -> Any:
        return {} if value is None else value


class ScalerStats(BaseModel):
    """StandardScaler ``mean_`` / ``scale_`` arrays aligned to the feature order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mean: Optional[Tuple[Optional[float], ...]] = Field(None, alias="mean_")
    scale: Optional[Tuple[Optional[float], ...]] = Field(None, alias="scale_")

    @field_validator("mean", "scale", mode="before")
    @classmethod
    def _lenient_array(cls, value: Any) -> Any:
        # Anything that is not a number means "do not scale this position"
        if not isinstance(value, (list, tuple)):
            return None
        return tuple(_statistic(v) for v in value)

    def aligned_to(self, width: int) -> bool:
        return (
            self.mean is not None
            and self.scale is not None
            and len(self.mean) == width
            and len(self.scale) == width
        )

    def scaled_positions(self, width: int) -> Tuple[int, ...]:
        """Positions that will actually be z-scored for a row of ``width``."""
        if not self.aligned_to(width):
            return ()
        return tuple(
            i for i, (m, s) in enumerate(zip(self.mean, self.scale))
            if m is not None and s is not None
            and math.isfinite(m) and math.isfinite(s) and s != 0
        )


class FeatureBundle(BaseModel):
    """Immutable preprocessing configuration matching the trained model."""

    model_config = ConfigDict(frozen=True)

    selected_features: Tuple[str, ...]
    label_encoders: Dict[str, LabelEncoding] = Field(default_factory=dict)
    scaler: ScalerStats = Field(default_factory=ScalerStats)
    version: Optional[str] = None
    mismatch_threshold: float = Field(DEFAULT_MISMATCH_THRESHOLD, gt=0)
    fingerprint: Optional[str] = None
    source: Optional[str] = None

    @field_validator("selected_features")
    @classmethod
    def _check_features(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        if not value:
            raise ValueError("selected_features must not be empty")
        if any(not name for name in value):
            raise ValueError("selected_features contains an empty name")
        duplicates = sorted(name for name, count in Counter(value).items() if count > 1)
        if duplicates:
            raise ValueError(f"duplicate feature names: {duplicates}")
        return value

    @field_validator("label_encoders", mode="before")
    @classmethod
    def _drop_empty_encoders(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        # A null/false/empty entry marks the column as not label-encoded
        empty = [col for col, entry in value.items() if entry in (None, False, 0, "")]
        if empty:
            logger.warning("Ignoring empty label encoders for %s", empty)
        return {col: entry for col, entry in value.items() if col not in empty}

    @field_validator("scaler", mode="before")
    @classmethod
    def _lenient_scaler(cls, value: Any) -> Any:
        if value is None or isinstance(value, (Mapping, ScalerStats)):
            return {} if value is None else value
        logger.warning(
            "Scaler section is %s, not an object; vectors will not be scaled",
            type(value).__name__,
        )
        return {}

    @field_validator("version", mode="before")
    @classmethod
    def _version_text(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("mismatch_threshold", mode="before")
    @classmethod
    def _default_threshold(cls, value: Any) -> Any:
        return DEFAULT_MISMATCH_THRESHOLD if value is None else value

    @property
    def feature_count(self) -> int:
        return len(self.selected_features)

    @property
    def scaler_aligned(self) -> bool:
        return self.scaler.aligned_to(self.feature_count)

    @property
    def categorical_features(self) -> Tuple[str, ...]:
        return tuple(col for col in self.selected_features if col in self.label_encoders)

    @property
    def unmapped_features(self) -> Tuple[str, ...]:
        return unmapped_fields(self.selected_features)

    def is_categorical(self, col: str) -> bool:
        return col in self.label_encoders


def parse_bundle(
    payload: Any,
    source: Optional[str] = None,
    fingerprint: Optional[str] = None,
) -> FeatureBundle:
    """
    Validate a decoded bundle document.

    Raises:
        ConfigurationError: If the document is not a usable bundle
    """
    if not isinstance(payload, Mapping):
        raise ConfigurationError(
            f"preprocessing bundle must be a JSON object, got {type(payload).__name__}"
        )
    if not isinstance(payload.get("selected_features"), list):
        raise ConfigurationError("preprocessing bundle is missing the 'selected_features' list")

    try:
        bundle = FeatureBundle.model_validate(
            {**payload, "source": source, "fingerprint": fingerprint}
        )
    except ValidationError as e:
        raise ConfigurationError(f"invalid preprocessing bundle: {e}") from e

    if bundle.scaler.mean is not None or bundle.scaler.scale is not None:
        if not bundle.scaler_aligned:
            logger.warning(
                "Scaler arrays (mean_=%s, scale_=%s) are not aligned to %d features; "
                "vectors will not be scaled",
                None if bundle.scaler.mean is None else len(bundle.scaler.mean),
                None if bundle.scaler.scale is None else len(bundle.scaler.scale),
                bundle.feature_count,
            )
    if bundle.unmapped_features:
        logger.warning(
            "Features not produced by the claim schema will be read from raw input: %s",
            list(bundle.unmapped_features),
        )
    return bundle


def load_bundle(path: Union[str, Path]) -> FeatureBundle:
    """
    Load the preprocessing bundle from disk.

    Args:
        path: Location of ``preprocessing_bundle.json``

    Returns:
        Validated, immutable FeatureBundle

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"preprocessing bundle not found: {path}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"cannot read preprocessing bundle {path}: {e}") from e

    try:
        payload = json.loads(data)
    except ValueError as e:
        raise ConfigurationError(f"preprocessing bundle {path} is not valid JSON: {e}") from e

    bundle = parse_bundle(
        payload,
        source=str(path),
        fingerprint=hashlib.sha256(data).hexdigest(),
    )
    logger.info(
        "Loaded preprocessing bundle from %s: %d features (%d categorical), fingerprint %s",
        path, bundle.feature_count, len(bundle.categorical_features), bundle.fingerprint[:12],
    )
    return bundle
