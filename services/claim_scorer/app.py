"""Claim scoring API - turns raw claims into model vectors and scores them."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response
from starlette.middleware.cors import CORSMiddleware

from bundle import FeatureBundle, load_bundle
from diagnostics import describe_bundle
from errors import ConfigurationError, MismatchError, ScoringError
from feature_vector import vectorize_batch
from schemas import BundleDiagnostics, ErrorResponse, PredictionMeta, PredictionResponse, TransformResponse
from scorer import ScoringClient, build_scoring_payload
from settings import Settings

logger = logging.getLogger(__name__)


# Prometheus metrics
vectorize_requests_total = Counter(
    'vectorize_requests_total',
    'Total number of claim vectorization requests',
    ['endpoint', 'status']
)

vectorize_rows_total = Counter(
    'vectorize_rows_total',
    'Total number of claim rows turned into feature vectors'
)

preprocessing_mismatch_total = Counter(
    'preprocessing_mismatch_total',
    'Batches rejected because vectors looked mismatched with the bundle'
)

vectorize_latency_seconds = Histogram(
    'vectorize_latency_seconds',
    'Time taken to normalize, encode and validate a batch (seconds)',
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
)

scoring_latency_seconds = Histogram(
    'scoring_latency_seconds',
    'Time taken by the remote scoring endpoint (seconds)',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

MISMATCH_SUGGESTIONS = [
    "Verify that label_encoders were exported from the same training run as the model.",
    "Verify that scaler mean_/scale_ arrays are aligned to selected_features.",
]

SCORER_SUGGESTIONS = [
    "Set SCORING_URI (and SCORING_KEY if the endpoint requires one).",
    "If the scorer complains about schema, try SCORING_PAYLOAD_STYLE=mlflow_split "
    "(default), then mlflow, then inputs.",
]

ClaimBody = Union[Dict[str, Any], List[Dict[str, Any]]]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup - load preprocessing bundle
    try:
        bundle = load_bundle(settings.bundle_path)
    except ConfigurationError as e:
        raise RuntimeError(f"Failed to load bundle: {e}") from e

    app.state.settings = settings
    app.state.bundle = bundle
    app.state.scoring_client = ScoringClient(
        settings.scoring_uri,
        key=settings.scoring_key,
        deployment=settings.scoring_deployment,
        timeout=settings.scoring_timeout,
    )
    if not settings.scoring_uri:
        logger.warning("SCORING_URI not set - /predict/claim will fail until it is configured")

    yield

    # Shutdown
    app.state.scoring_client.close()


app = FastAPI(
    title="Claim Scoring API",
    description="Claim preprocessing and fraud scoring service",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_bundle(request: Request) -> Optional[FeatureBundle]:
    return getattr(request.app.state, "bundle", None)


def get_scoring_client(request: Request) -> Optional[ScoringClient]:
    return getattr(request.app.state, "scoring_client", None)


def as_rows(body: ClaimBody) -> List[Dict[str, Any]]:
    """Accept either a single claim object or a list of them."""
    return body if isinstance(body, list) else [body]


def encode_rows(rows: List[Dict[str, Any]], bundle: Optional[FeatureBundle], endpoint: str) -> List[List[float]]:
    with vectorize_latency_seconds.time():
        try:
            vectors = vectorize_batch(rows, bundle)
        except MismatchError:
            preprocessing_mismatch_total.inc()
            vectorize_requests_total.labels(endpoint=endpoint, status='mismatch').inc()
            raise
    vectorize_rows_total.inc(len(vectors))
    return vectors


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(error="bundle-not-loaded", message=str(exc)).model_dump(),
    )


@app.exception_handler(MismatchError)
async def mismatch_error_handler(request: Request, exc: MismatchError):
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="preprocessing_mismatch",
            message=str(exc),
            suggestions=MISMATCH_SUGGESTIONS,
            details={"bad_values": exc.bad_count, "rows": exc.rows, "threshold": exc.threshold},
        ).model_dump(),
    )


@app.exception_handler(ScoringError)
async def scoring_error_handler(request: Request, exc: ScoringError):
    return JSONResponse(
        status_code=502,
        content=ErrorResponse(
            error="claim-scorer-failed",
            message=str(exc),
            suggestions=SCORER_SUGGESTIONS,
            details={"upstream_status": exc.status_code},
        ).model_dump(),
    )


@app.post("/predict/claim", response_model=PredictionResponse)
def predict_claim(
    request: Request,
    body: ClaimBody = Body(...),
    bundle: Optional[FeatureBundle] = Depends(get_bundle),
    client: Optional[ScoringClient] = Depends(get_scoring_client),
):
    """
    Score one claim or a batch of claims.

    Normalizes, encodes and scales every row, wraps the vectors in the
    configured payload style and forwards them to the remote scorer.
    """
    rows = as_rows(body)
    vectors = encode_rows(rows, bundle, 'predict')

    if client is None:
        raise ScoringError("scoring client not initialized")

    style = request.app.state.settings.payload_style
    payload = build_scoring_payload(style, bundle.selected_features, vectors)
    try:
        with scoring_latency_seconds.time():
            predictions = client.score(payload)
    except ScoringError:
        vectorize_requests_total.labels(endpoint='predict', status='scorer_error').inc()
        raise

    vectorize_requests_total.labels(endpoint='predict', status='success').inc()
    return PredictionResponse(
        predictions=predictions,
        meta=PredictionMeta(rows=len(vectors), cols=bundle.feature_count, payload_style=style),
    )


@app.post("/debug/transform-claim", response_model=TransformResponse)
def transform_claim(
    body: ClaimBody = Body(...),
    bundle: Optional[FeatureBundle] = Depends(get_bundle),
):
    """
    Debug endpoint returning the exact vectors that would be scored.
    """
    vectors = encode_rows(as_rows(body), bundle, 'transform')
    vectorize_requests_total.labels(endpoint='transform', status='success').inc()
    return TransformResponse(
        selected_features=list(bundle.selected_features),
        vectors=vectors,
        rows=len(vectors),
        cols=bundle.feature_count,
    )


@app.get("/diag/preprocess", response_model=BundleDiagnostics)
def diag_preprocess(bundle: Optional[FeatureBundle] = Depends(get_bundle)):
    """Bundle introspection: feature count, version and leading feature names."""
    return describe_bundle(bundle)


@app.get("/health")
def health_check(request: Request):
    """Health check endpoint."""
    bundle = get_bundle(request)
    client = get_scoring_client(request)
    return {
        "status": "healthy" if bundle is not None else "unhealthy",
        "bundle": "loaded" if bundle is not None else "not_loaded",
        "scorer": "configured" if client is not None and client.uri else "not_configured",
    }


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    uvicorn.run(app, host=settings.host, port=settings.port)
