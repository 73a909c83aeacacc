"""Field-level comparison of two block records.

Fingerprints only say *that* two blocks differ. This module says *where*,
by walking both records' canonical JSON trees side by side.

Discrepancy kinds:
    value_mismatch   - same path, different scalar values
    type_mismatch    - same path, different JSON types
    missing_in_a     - path present only in record B
    missing_in_b     - path present only in record A
    length_mismatch  - lists of different length (common prefix still walked)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from block_qa_tracker.canonical import canonicalize
from block_qa_tracker.records import BlockRecord


def _walk(a: Any, b: Any, path: str, out: list[dict[str, Any]]) -> None:
    if isinstance(a, dict) and isinstance(b, dict):
        for key in sorted(set(a) | set(b)):
            child = f"{path}.{key}" if path else key
            if key not in a:
                out.append({"path": child, "kind": "missing_in_a", "a": None, "b": b[key]})
            elif key not in b:
                out.append({"path": child, "kind": "missing_in_b", "a": a[key], "b": None})
            else:
                _walk(a[key], b[key], child, out)
        return

    if isinstance(a, list) and isinstance(b, list):
        if len(a) != len(b):
            out.append({"path": path, "kind": "length_mismatch", "a": len(a), "b": len(b)})
        for idx, (av, bv) in enumerate(zip(a, b)):
            _walk(av, bv, f"{path}[{idx}]", out)
        return

    if type(a) is not type(b):
        out.append({"path": path, "kind": "type_mismatch", "a": a, "b": b})
    elif a != b:
        out.append({"path": path, "kind": "value_mismatch", "a": a, "b": b})


def diff_records(
    record_a: BlockRecord,
    record_b: BlockRecord,
    canonical: bool = True,
) -> dict[str, Any]:
    """Compare two records and list their discrepancies.

    Args:
        record_a: Record from source A
        record_b: Record from source B
        canonical: Compare canonical copies (diagnostic logs ignored)

    Returns:
        Dictionary with comparison results and any discrepancies
    """
    if canonical:
        record_a, record_b = canonicalize(record_a), canonicalize(record_b)

    discrepancies: list[dict[str, Any]] = []
    _walk(record_a.to_dict(), record_b.to_dict(), "", discrepancies)

    return {
        "aligned": len(discrepancies) == 0,
        "sequence_a": record_a.sequence,
        "sequence_b": record_b.sequence,
        "discrepancy_count": len(discrepancies),
        "discrepancies": discrepancies,
    }


def load_artifact(path: Path | str) -> BlockRecord:
    """Load a divergence artifact file back into a BlockRecord."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        return BlockRecord.from_dict(json.load(f))
