"""
Diff engine (``workflow_kernel.domain.diff``).

Responsibility
--------------
Capture the tracked subset of a record as a snapshot, compute the minimal
difference between two snapshots, render a labelled before/after view for
decision-makers, and merge an approved snapshot back onto live fields.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* ``compute_diff(a, b) == {}`` iff ``deep_equal(a, b)`` over the keys of ``b``.
* Equality is structural: mapping key sets and values recursively,
  sequences in order.  Object identity is never consulted.
* Missing, ``None`` and empty-string values render as :data:`EMPTY_MARKER`.
* ``apply_snapshot`` merges nested mappings key-wise and replaces
  sequences wholesale; it never mutates its inputs.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

Snapshot = dict[str, Any]

EMPTY_MARKER = "(empty)"

_MISSING = object()
_LOWERCASE_WORDS = ("Of", "And", "The")


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality over mappings, sequences and scalars."""
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a) != set(b):
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if _is_sequence(a) and _is_sequence(b):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, Mapping) or isinstance(b, Mapping):
        return False
    if _is_sequence(a) or _is_sequence(b):
        return False
    return a == b


def compute_diff(previous: Mapping[str, Any], candidate: Mapping[str, Any]) -> Snapshot:
    """
    Return the keys of ``candidate`` whose value differs from ``previous``.

    Nested mappings are compared key-wise: a nested key is included, with
    only its differing children, when any child differs.  Keys present in
    ``previous`` but absent from ``candidate`` are not reported.
    """
    diff: Snapshot = {}
    for key, value in candidate.items():
        before = previous.get(key, _MISSING) if isinstance(previous, Mapping) else _MISSING
        if isinstance(value, Mapping) and isinstance(before, Mapping):
            nested = compute_diff(before, value)
            if nested:
                diff[key] = nested
        elif before is _MISSING or not deep_equal(before, value):
            diff[key] = copy.deepcopy(value)
    return diff


# ---------------------------------------------------------------------------
# Snapshot capture
# ---------------------------------------------------------------------------


def get_path(source: Mapping[str, Any], path: str) -> Any:
    """Dotted-path lookup; returns None when any segment is missing."""
    node: Any = source
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


def _set_path(target: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    node = target
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value


def has_value(value: Any) -> bool:
    return value is not None and value != ""


def build_snapshot(source: Mapping[str, Any], tracked_fields: Iterable[str]) -> Snapshot:
    """Copy the tracked dotted paths of ``source`` into a nested snapshot."""
    snapshot: Snapshot = {}
    for path in tracked_fields:
        _set_path(snapshot, path, copy.deepcopy(get_path(source, path)))
    return snapshot


def build_candidate(
    live: Mapping[str, Any],
    submitted: Mapping[str, Any],
    tracked_fields: Iterable[str],
) -> Snapshot:
    """
    Build the proposed snapshot from a submitted form.

    A tracked field that is missing from ``submitted`` or submitted as an
    empty string keeps its live value, so a partial form never blanks a
    field.
    """
    candidate: Snapshot = {}
    for path in tracked_fields:
        value = get_path(submitted, path)
        if not has_value(value):
            value = get_path(live, path)
        _set_path(candidate, path, copy.deepcopy(value))
    return candidate


def apply_snapshot(fields: Mapping[str, Any], current: Mapping[str, Any]) -> Snapshot:
    """Return ``fields`` with ``current`` merged on top."""
    merged: Snapshot = copy.deepcopy(dict(fields))
    for key, value in current.items():
        existing = merged.get(key)
        if isinstance(value, Mapping) and isinstance(existing, Mapping):
            merged[key] = apply_snapshot(existing, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenderedField:
    """One labelled before/after line of a rendered diff."""

    path: str
    label: str
    previous: str
    current: str
    changed: bool


@dataclass(frozen=True)
class DiffView:
    """Rendered before/after view of a proposal."""

    fields: tuple[RenderedField, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.fields

    @property
    def changed_fields(self) -> tuple[RenderedField, ...]:
        return tuple(f for f in self.fields if f.changed)

    def to_dict(self) -> list[dict[str, Any]]:
        return [
            {
                "path": f.path,
                "label": f.label,
                "previous": f.previous,
                "current": f.current,
                "changed": f.changed,
            }
            for f in self.fields
        ]


def display_name(field_path: str, labels: Mapping[str, str] | None = None) -> str:
    """
    Human-readable label for a dotted field path.

    Configured labels win.  Otherwise each path segment is split before
    capitals and capitalised, and the segments are joined with spaces
    (``ispInfo.broadbandPlan`` -> ``Isp Info Broadband Plan``).  Connecting
    words stay lowercase (``numberOfMonths`` -> ``Number of Months``).
    """
    if labels and field_path in labels:
        return labels[field_path]
    return " ".join(_humanize(part) for part in field_path.split(".") if part)


def _humanize(part: str) -> str:
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", part)
    words = words[0].upper() + words[1:]
    for word in _LOWERCASE_WORDS:
        words = re.sub(rf"(?<=\s){word}(?=\s|$)", word.lower(), words)
    return words


def format_value(value: Any) -> str:
    if value is _MISSING or not has_value(value):
        return EMPTY_MARKER
    if _is_sequence(value):
        if not value:
            return EMPTY_MARKER
        return ", ".join(format_value(v) for v in value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def render_diff(
    previous: Mapping[str, Any] | None,
    current: Mapping[str, Any] | None,
    labels: Mapping[str, str] | None = None,
) -> DiffView:
    """
    Render every key of ``current`` with its previous and current value.

    Nested mappings are flattened to dotted paths.  Returns an empty view
    when the snapshots are deeply equal.
    """
    previous = previous or {}
    current = current or {}
    if deep_equal(dict(previous), dict(current)):
        return DiffView()
    rendered: list[RenderedField] = []
    _render_into(rendered, previous, current, "", labels)
    return DiffView(fields=tuple(rendered))


def _render_into(
    out: list[RenderedField],
    previous: Any,
    current: Mapping[str, Any],
    prefix: str,
    labels: Mapping[str, str] | None,
) -> None:
    for key, value in current.items():
        path = f"{prefix}{key}"
        before = previous.get(key, _MISSING) if isinstance(previous, Mapping) else _MISSING
        if isinstance(value, Mapping) and not value:
            if isinstance(before, Mapping) and before:
                # An emptied object shows each child it used to hold
                _render_into(out, before, _blank(before), f"{path}.", labels)
                continue
            value = None
        if isinstance(value, Mapping):
            _render_into(out, before, value, f"{path}.", labels)
            continue
        before_value = None if before is _MISSING or before == {} else before
        changed = not _rendered_equal(before_value, value)
        out.append(RenderedField(
            path=path,
            label=display_name(path, labels),
            previous=format_value(before_value),
            current=format_value(value),
            changed=changed,
        ))


def _blank(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _blank(v) for k, v in value.items()}
    return None


def _rendered_equal(a: Any, b: Any) -> bool:
    # None, missing and "" all read as "(empty)" to a reviewer
    if not has_value(a) and not has_value(b):
        return True
    return deep_equal(a, b)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))
