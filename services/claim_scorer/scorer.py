"""Client for the remote claim scoring endpoint."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from errors import ScoringError

logger = logging.getLogger(__name__)


def build_scoring_payload(
    style: str,
    columns: Sequence[str],
    vectors: List[List[float]],
) -> Dict[str, Any]:
    """
    Wrap vectors in the request shape the deployed model expects.

    ``mlflow_split`` is the default and is also used for unknown styles.
    """
    style = (style or "mlflow_split").lower()
    if style == "mlflow":
        return {"input_data": {"columns": list(columns), "data": vectors}}
    if style == "inputs":
        return {"inputs": vectors}
    return {
        "input_data": {
            "columns": list(columns),
            "index": list(range(len(vectors))),
            "data": vectors,
        }
    }


class ScoringClient:
    """Posts payloads to the scoring endpoint and returns its predictions."""

    def __init__(
        self,
        uri: Optional[str],
        key: Optional[str] = None,
        deployment: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.uri = uri
        self.key = key
        self.deployment = deployment
        self.timeout = timeout
        self.session = session or requests.Session()

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.key:
            headers["Authorization"] = f"Bearer {self.key}"
        if self.deployment:
            headers["azureml-model-deployment"] = self.deployment
        return headers

    def score(self, payload: Dict[str, Any]) -> Any:
        """
        Send one scoring request.

        Returns:
            Decoded JSON body, or the raw text if the body is not JSON

        Raises:
            ScoringError: If the URI is unset, the request fails, or the
                endpoint answers with a non-2xx status
        """
        if not self.uri:
            raise ScoringError("scoring URI not set")

        try:
            response = self.session.post(
                self.uri, json=payload, headers=self.headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Scoring request to %s failed: %s", self.uri, e)
            raise ScoringError(f"scoring request failed: {e}") from e

        if not response.ok:
            logger.error("Scoring endpoint returned %s: %s", response.status_code, response.text)
            raise ScoringError(
                f"scorer {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError:
            return response.text

    def close(self) -> None:
        self.session.close()
