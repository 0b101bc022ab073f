"""Bundle introspection for health and debug endpoints."""

from typing import Optional

from bundle import FeatureBundle
from errors import ConfigurationError
from schemas import BundleDiagnostics

PREPROCESS_VERSION = "preprocess-v2"


def describe_bundle(bundle: Optional[FeatureBundle], preview: int = 5) -> BundleDiagnostics:
    """
    Summarize a loaded bundle.

    Args:
        bundle: Bundle held by the running service
        preview: Number of leading feature names to include

    Raises:
        ConfigurationError: If no bundle is loaded
    """
    if bundle is None:
        raise ConfigurationError("preprocessing bundle not loaded")

    return BundleDiagnostics(
        feature_count=bundle.feature_count,
        version=PREPROCESS_VERSION,
        bundle_version=bundle.version,
        fingerprint=bundle.fingerprint,
        selected_features_head=list(bundle.selected_features[:max(preview, 0)]),
        categorical_count=len(bundle.categorical_features),
        scaled_count=len(bundle.scaler.scaled_positions(bundle.feature_count)),
        scaler_aligned=bundle.scaler_aligned,
        mismatch_threshold=bundle.mismatch_threshold,
        unmapped_features=list(bundle.unmapped_features),
    )
