"""Post-encoding sanity check for feature vectors."""

import logging
import math
from typing import List, Sequence

from errors import MismatchError

logger = logging.getLogger(__name__)

# No correctly z-scored feature or label index should ever get this large.
DEFAULT_MISMATCH_THRESHOLD = 50.0


def _implausible(value: float, threshold: float) -> bool:
    return not math.isfinite(value) or abs(value) > threshold


def count_implausible(
    vectors: Sequence[Sequence[float]],
    threshold: float = DEFAULT_MISMATCH_THRESHOLD,
) -> int:
    """Count entries that are NaN, infinite, or larger than ``threshold``."""
    return sum(1 for row in vectors for value in row if _implausible(value, threshold))


def validate_batch(
    vectors: List[List[float]],
    threshold: float = DEFAULT_MISMATCH_THRESHOLD,
) -> List[List[float]]:
    """
    Reject the whole batch if any entry looks like a bundle/schema mismatch.

    A single bad row fails the request so that configuration drift is
    noticed immediately instead of producing quietly degraded scores.

    Args:
        vectors: Encoded and scaled rows
        threshold: Largest absolute value accepted

    Returns:
        ``vectors`` unchanged when every entry is plausible

    Raises:
        MismatchError: If at least one entry is implausible
    """
    bad_rows = [
        index for index, row in enumerate(vectors)
        if any(_implausible(value, threshold) for value in row)
    ]
    if bad_rows:
        bad_count = count_implausible(vectors, threshold)
        logger.warning(
            "Rejecting batch of %d row(s): %d implausible value(s) in rows %s",
            len(vectors), bad_count, bad_rows,
        )
        raise MismatchError(bad_count, bad_rows, threshold)
    return vectors
