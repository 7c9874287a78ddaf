from __future__ import annotations

import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize `obj` the one way job reports are written and signed.

    UTF-8, sorted keys, compact separators, trailing LF. NaN and Infinity are
    rejected since they are not JSON and would not survive a reload.
    """

    text = json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"), allow_nan=False) + "\n"
    return text.encode("utf-8", errors="strict")


def _unique_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in pairs:
        if k in out:
            raise ValueError(f"duplicate key {k!r}")
        out[k] = v
    return out


def _no_constants(name: str) -> Any:
    raise ValueError(f"non-finite number {name}")


def parse_json_bytes(data: bytes) -> Any:
    """Strictly parse JSON bytes: UTF-8 only, no duplicate keys, no NaN/Infinity.

    A report with a duplicated key would canonicalize to something other than
    what a reader sees, so it is refused. Raises ValueError.
    """

    try:
        text = data.decode("utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise ValueError(f"not UTF-8: {e}") from e
    return json.loads(text, object_pairs_hook=_unique_keys, parse_constant=_no_constants)
