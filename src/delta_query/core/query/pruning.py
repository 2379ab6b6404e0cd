from __future__ import annotations

import logging
import operator as _op
import re
from typing import Any, Callable, Dict, Iterable, List, Sequence

from delta_query.core.enums import Operator, ValueKind
from delta_query.core.query.predicate import Predicate
from delta_query.sources.manifest import FileReference

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.\d+$")

_COMPARATORS: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _op.eq,
    Operator.NEQ: _op.ne,
    Operator.GT: _op.gt,
    Operator.LT: _op.lt,
    Operator.GTE: _op.ge,
    Operator.LTE: _op.le,
}


class _Mismatch:
    """Marker for a partition value that cannot be compared with the predicate."""


_MISMATCH = _Mismatch()


def coerce_partition_value(raw: Any) -> Any:
    """Turn a partition string into int/float when it looks numeric.

    Partition values arrive as strings; anything that is not a plain
    integer or decimal literal is returned unchanged.
    """
    if not isinstance(raw, str):
        return raw
    if _INT_RE.match(raw):
        return int(raw)
    if _FLOAT_RE.match(raw):
        return float(raw)
    return raw


def _comparable(raw: Any, predicate: Predicate) -> Any:
    """Return the partition value in the predicate's type, or the mismatch marker."""
    kind = predicate.kind
    if kind is ValueKind.TEXT:
        text = raw if isinstance(raw, str) else str(raw)
        if predicate.operator not in (Operator.EQ, Operator.NEQ) and isinstance(
            coerce_partition_value(text), (int, float)
        ):
            # Text ordering applies to non-numeric partition values only.
            return _MISMATCH
        return text
    if kind in (ValueKind.INTEGER, ValueKind.FLOAT):
        value = coerce_partition_value(raw)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return _MISMATCH
    if kind is ValueKind.BOOL:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("true", "false"):
            return text == "true"
        return _MISMATCH
    return _MISMATCH


def _satisfies(partition_values: Dict[str, Any], predicate: Predicate) -> bool:
    raw = partition_values.get(predicate.column)
    if raw is None:
        # Column is not part of this file's partitioning: cannot rule it out.
        return True
    if predicate.kind is ValueKind.NULL:
        # A present partition value is never null.
        return predicate.operator is Operator.NEQ
    value = _comparable(raw, predicate)
    if value is _MISMATCH:
        logger.debug(
            "Partition value %r of %s is not comparable with %r",
            raw,
            predicate.column,
            predicate.value,
        )
        return False
    return _COMPARATORS[predicate.operator](value, predicate.value)


def file_matches(file: FileReference, predicates: Iterable[Predicate]) -> bool:
    """True when the file's partition values satisfy every applicable predicate."""
    return all(_satisfies(file.partition_values, p) for p in predicates)


def prune_files(
    files: Sequence[FileReference], predicates: Sequence[Predicate]
) -> List[FileReference]:
    """Drop files whose partition values cannot match the predicates.

    Predicates on columns a file is not partitioned by never exclude it.
    Text predicates test equality against the raw partition string and order
    non-numeric strings lexicographically (ISO dates sort correctly); ordering
    a text predicate against a numeric-looking partition value is a mismatch.
    Returns the input unchanged (as a list) when there are no predicates.
    """
    if not predicates:
        return list(files)
    kept = [f for f in files if file_matches(f, predicates)]
    if len(kept) < len(files):
        logger.info("Partition pruning kept %d of %d files", len(kept), len(files))
    return kept


__all__ = ["coerce_partition_value", "file_matches", "prune_files"]
