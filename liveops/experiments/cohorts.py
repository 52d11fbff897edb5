"""
Cohort Assignment Engine

Deterministic mapping from a caller identity to a cohort of an experiment.
The hash is the 31-multiplier string hash over UTF-16 code units, wrapped to
a signed 32-bit integer after every step, so buckets are reproducible across
releases and match assignments already stored.
"""

from typing import Mapping

BUCKETS = 10000
DEFAULT_COHORT = "control"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def identity_hash(identity: str) -> int:
    """Signed 32-bit hash of ``identity``"""
    h = 0
    data = identity.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(h * 31 + code_unit)
    return h


def bucket_value(identity: str) -> float:
    """Position of ``identity`` in ``[0, 1)`` with 1/10000 resolution"""
    return (abs(identity_hash(identity)) % BUCKETS) / BUCKETS


def assign_cohort(identity: str, distribution: Mapping[str, float]) -> str:
    """
    Pick the cohort for ``identity``.

    Weights are accumulated in the distribution's iteration order and the
    first cohort whose cumulative weight is strictly greater than the
    identity's bucket wins. If the weights sum below the bucket the first
    cohort is returned; an empty distribution yields ``"control"``.

    Example:
        assign_cohort("player-42", {"control": 0.5, "verbose_tutorial": 0.5})
    """
    normalized = bucket_value(identity)

    cumulative = 0.0
    for cohort, weight in distribution.items():
        cumulative += float(weight)
        if normalized < cumulative:
            return cohort

    for cohort in distribution:
        return cohort
    return DEFAULT_COHORT
