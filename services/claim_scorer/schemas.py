"""Pydantic schemas for the claim scoring API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class BundleDiagnostics(BaseModel):
    """Read-only summary of the loaded preprocessing bundle."""

    ok: bool = True
    feature_count: int = Field(..., description="Length of every feature vector")
    version: str = Field(..., description="Preprocessing format marker")
    bundle_version: Optional[str] = Field(None, description="Version declared by the bundle file")
    fingerprint: Optional[str] = Field(None, description="SHA-256 of the bundle file")
    selected_features_head: List[str] = Field(..., description="First feature names, in order")
    categorical_count: int = Field(..., description="Label-encoded features")
    scaled_count: int = Field(..., description="Positions the scaler will z-score")
    scaler_aligned: bool = Field(..., description="Scaler arrays match the feature count")
    mismatch_threshold: float = Field(..., description="Largest plausible absolute value")
    unmapped_features: List[str] = Field(
        default_factory=list,
        description="Features read straight from raw input",
    )


class TransformResponse(BaseModel):
    """Vectors produced by the debug transform endpoint."""

    ok: bool = True
    selected_features: List[str]
    vectors: List[List[float]]
    rows: int
    cols: int


class PredictionMeta(BaseModel):
    """Shape of the batch that was sent to the scorer."""

    rows: int
    cols: int
    payload_style: str


class PredictionResponse(BaseModel):
    """Response model for claim prediction endpoint."""

    ok: bool = True
    predictions: Any
    meta: PredictionMeta


class ErrorResponse(BaseModel):
    """Error body returned by the exception handlers."""

    error: str
    message: str
    suggestions: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
