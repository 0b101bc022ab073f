"""Feature vector assembly for model inference."""

from typing import Any, List, Mapping, Sequence

from bundle import UNKNOWN_SENTINEL, FeatureBundle, LabelEncoding, ScalerStats
from errors import ConfigurationError
from normalizer import UNKNOWN, normalize_record, to_number, to_text
from validator import validate_batch


def encode_categorical(encoding: LabelEncoding, value: Any) -> int:
    """
    Look up the training-time index of a categorical value.

    Missing values use the ``"Unknown"`` key. Unseen values fall back to
    ``unknown_index``, then to a ``"__UNK__"`` entry, then to 0.
    """
    key = UNKNOWN if value is None or value == "" else to_text(value)
    mapping = encoding.mapping
    if key in mapping:
        return mapping[key]
    if encoding.unknown_index is not None:
        return encoding.unknown_index
    if UNKNOWN_SENTINEL in mapping:
        return mapping[UNKNOWN_SENTINEL]
    return 0


def apply_scaler(row: List[float], scaler: ScalerStats) -> List[float]:
    """
    Z-score each position the scaler declares.

    Scaling only happens when both arrays are exactly as long as the row.
    Positions with a null, non-finite or zero statistic keep their value,
    so label indices can sit next to scaled numeric columns.
    """
    scaled = list(row)
    for i in scaler.scaled_positions(len(row)):
        scaled[i] = (scaled[i] - scaler.mean[i]) / scaler.scale[i]
    return scaled


def build_feature_vector(normalized: Mapping[str, Any], bundle: FeatureBundle) -> List[float]:
    """
    Build feature vector matching training order.

    Args:
        normalized: Canonical record from ``normalize_record``
        bundle: Loaded preprocessing bundle

    Returns:
        List of floats, one per ``bundle.selected_features`` entry
    """
    row: List[float] = []
    for col in bundle.selected_features:
        if bundle.is_categorical(col):
            encoding = bundle.label_encoders[col]
            row.append(float(encode_categorical(encoding, normalized.get(col))))
        else:
            row.append(to_number(normalized.get(col)))
    return apply_scaler(row, bundle.scaler)


def vectorize_record(raw: Mapping[str, Any], bundle: FeatureBundle) -> List[float]:
    """Normalize one raw claim and encode it."""
    normalized = normalize_record(raw, extra_fields=bundle.unmapped_features)
    return build_feature_vector(normalized, bundle)


def vectorize_batch(records: Sequence[Mapping[str, Any]], bundle: FeatureBundle) -> List[List[float]]:
    """
    Turn raw claim records into model-ready vectors.

    Args:
        records: Raw claim objects, one per row
        bundle: Loaded preprocessing bundle

    Returns:
        One vector per record, in input order

    Raises:
        ConfigurationError: If no bundle is loaded
        TypeError: If ``records`` is not a sequence of objects
        MismatchError: If the encoded batch fails validation
    """
    if bundle is None:
        raise ConfigurationError("preprocessing bundle not loaded")
    if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
        raise TypeError("vectorize_batch expects a list of objects")
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise TypeError(f"record {index} is {type(record).__name__}, expected an object")

    vectors = [vectorize_record(record, bundle) for record in records]
    return validate_batch(vectors, bundle.mismatch_threshold)
