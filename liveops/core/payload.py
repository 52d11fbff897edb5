"""
RPC payload decoding

Payloads arrive as JSON text. Decoding is strict: non-standard constants
(NaN, Infinity) are refused and, unless told otherwise, the top level must
be an object.
"""

import json
from typing import Any, Dict, Iterable, Union

from liveops.core.errors import MalformedPayload, ValidationFailed


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unsupported JSON constant: {name}")


def parse_payload(
    payload: Union[str, bytes, None],
    *,
    allow_empty: bool = False,
    require_object: bool = True,
) -> Any:
    """
    Decode an RPC payload.

    Args:
        payload: Raw JSON text (or UTF-8 bytes) from the transport
        allow_empty: Treat an empty/blank payload as ``{}``
        require_object: Reject JSON whose top level is not an object

    Raises:
        MalformedPayload: If the text is not valid JSON or has the wrong top level
    """
    if payload is None or not payload.strip():
        if allow_empty:
            return {}
        raise MalformedPayload("Payload is empty")

    try:
        data = json.loads(payload, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedPayload(f"Invalid JSON payload: {e}") from e

    if require_object and not isinstance(data, dict):
        raise MalformedPayload("Payload must be a JSON object")

    return data


def reject_unknown_fields(params: Dict[str, Any], allowed: Iterable[str], **details: Any) -> None:
    """Raise ValidationFailed if ``params`` carries a field outside ``allowed``."""
    unknown = sorted(set(params) - set(allowed))
    if unknown:
        raise ValidationFailed(f"Unknown field(s): {', '.join(unknown)}", **details)
