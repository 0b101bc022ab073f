"""Unit tests for categorical encoding, scaling and batch vectorization."""

import math

import pytest

from bundle import LabelEncoding, ScalerStats, parse_bundle
from errors import ConfigurationError, MismatchError
from feature_vector import (
    apply_scaler,
    build_feature_vector,
    encode_categorical,
    vectorize_batch,
    vectorize_record,
)
from normalizer import normalize_record


def test_encode_categorical_unknown_index():
    """Test unseen values use the declared unknown_index."""
    encoding = LabelEncoding(mapping={"A": 0, "B": 1}, unknown_index=2)

    assert encode_categorical(encoding, "A") == 0
    assert encode_categorical(encoding, "B") == 1
    assert encode_categorical(encoding, "C") == 2
    assert encode_categorical(encoding, None) == 2
    assert encode_categorical(encoding, "") == 2


def test_encode_categorical_prefers_unknown_entry_for_missing():
    """Test missing values hit the mapping's "Unknown" key first."""
    encoding = LabelEncoding(mapping={"A": 0, "Unknown": 5}, unknown_index=2)

    assert encode_categorical(encoding, None) == 5
    assert encode_categorical(encoding, "Z") == 2


def test_encode_categorical_sentinel_then_zero():
    """Test the __UNK__ entry and the final 0 fallback."""
    with_sentinel = LabelEncoding(mapping={"A": 3, "__UNK__": 7})
    bare = LabelEncoding(mapping={"A": 3})

    assert encode_categorical(with_sentinel, "Z") == 7
    assert encode_categorical(bare, "Z") == 0


def test_encode_categorical_stringifies_numbers():
    """Test numeric raw values are looked up by their text form."""
    encoding = LabelEncoding(mapping={"1": 4, "true": 9})

    assert encode_categorical(encoding, 1) == 4
    assert encode_categorical(encoding, 1.0) == 4
    assert encode_categorical(encoding, True) == 9


def test_apply_scaler_skips_unusable_positions():
    """Test null or zero statistics leave the value unscaled."""
    scaler = ScalerStats(mean_=[10, None], scale_=[2, 0])
    assert apply_scaler([14.0, 5.0], scaler) == [2.0, 5.0]


def test_apply_scaler_skips_non_finite_statistics():
    scaler = ScalerStats(mean_=[float("nan"), 1.0], scale_=[1.0, float("inf")])
    assert apply_scaler([3.0, 4.0], scaler) == [3.0, 4.0]


def test_apply_scaler_requires_aligned_arrays():
    """Test misaligned scaler arrays disable scaling entirely."""
    scaler = ScalerStats(mean_=[10, 10, 10], scale_=[2, 2, 2])
    assert apply_scaler([14.0, 5.0], scaler) == [14.0, 5.0]
    assert apply_scaler([14.0, 5.0], ScalerStats()) == [14.0, 5.0]


def test_build_feature_vector_in_bundle_order(bundle, ui_claim):
    """Test the vector follows selected_features exactly."""
    vector = build_feature_vector(normalize_record(ui_claim), bundle)

    assert len(vector) == len(bundle.selected_features)
    assert vector == pytest.approx([1, 1.0, 0, 0, 1, 1, 1.2, 0, 1.0, 1.0])


def test_vectorize_record_defaults(bundle):
    """Test an empty claim still produces a well-formed vector."""
    vector = vectorize_record({}, bundle)
    assert vector == pytest.approx([2, -0.5, 1, 3, 0, 2, -0.8, 0, -7.0, -0.5])


def test_vectorize_batch_shape_and_finiteness(bundle, ui_claim):
    """Test n records produce n finite vectors of bundle length."""
    records = [ui_claim, {}, {"provider_id": "PRV99999", "gender": "M"}]
    vectors = vectorize_batch(records, bundle)

    assert len(vectors) == 3
    for vector in vectors:
        assert len(vector) == len(bundle.selected_features)
        assert all(isinstance(v, float) and math.isfinite(v) for v in vector)


def test_vectorize_batch_is_idempotent(bundle, ui_claim):
    """Test the same input always yields the same vector."""
    assert vectorize_batch([ui_claim], bundle) == vectorize_batch([ui_claim], bundle)


def test_vectorize_batch_empty(bundle):
    assert vectorize_batch([], bundle) == []


def test_declared_categorical_ignores_raw_type(bundle):
    """Test numeric raw values in label-encoded columns are encoded, not scaled."""
    vector = vectorize_record({"Gender": 1}, bundle)
    gender = bundle.selected_features.index("Gender")
    assert vector[gender] == 0.0


def test_unscaled_amount_rejects_batch(bundle_payload):
    """Test a raw dollar amount slipping through fails the whole batch."""
    bundle_payload["scaler"] = None
    bundle = parse_bundle(bundle_payload)

    with pytest.raises(MismatchError) as exc_info:
        vectorize_batch([{"claim_amount": 5}, {"claim_amount": 1000}], bundle)

    assert exc_info.value.bad_count == 1
    assert exc_info.value.rows == [1]


def test_outlier_after_scaling_rejects_batch(bundle):
    """Test scaled values beyond the threshold are treated as a mismatch."""
    with pytest.raises(MismatchError):
        vectorize_batch([{"claim_amount": "$150,000"}], bundle)


def test_bundle_threshold_is_used(bundle_payload):
    bundle_payload["scaler"] = None
    bundle_payload["mismatch_threshold"] = 2000
    bundle = parse_bundle(bundle_payload)

    vectors = vectorize_batch([{"claim_amount": 1000}], bundle)
    assert vectors[0][1] == 1000.0


def test_vectorize_batch_without_bundle():
    """Test a missing bundle is a configuration error."""
    with pytest.raises(ConfigurationError):
        vectorize_batch([{}], None)


def test_vectorize_batch_rejects_non_list(bundle):
    with pytest.raises(TypeError):
        vectorize_batch({"provider_id": "PRV1"}, bundle)
    with pytest.raises(TypeError):
        vectorize_batch("claims", bundle)
    with pytest.raises(TypeError):
        vectorize_batch([{}, 42], bundle)


def test_unmapped_bundle_feature_reads_raw_value(bundle_payload):
    """Test features outside the claim schema come straight from input."""
    bundle_payload["selected_features"].append("ProviderRiskTier")
    bundle_payload["label_encoders"]["ProviderRiskTier"] = {"mapping": {"low": 0, "high": 1}}
    bundle_payload["scaler"]["mean_"].append(None)
    bundle_payload["scaler"]["scale_"].append(None)
    bundle = parse_bundle(bundle_payload)

    vector = vectorize_record({"ProviderRiskTier": "high"}, bundle)
    assert vector[-1] == 1.0
