"""
otkit.utils.tree - Traversal and navigation helpers for decoded traces.

The decoded tree only stores parent spans by id, so parent, child and
ancestor relations are resolved by lookup over a list of spans. Span ids
are only unique within a trace; every lookup here is keyed by the
(trace id, span id) pair.

Functions:
    walk_spans: Iterate (resource, scope, span) in wire order
    flatten_spans: Collect every span of an export into a list
    count_spans: Count spans in an export
    get_span_by_id: Find a span by id
    get_parent: Find the parent of a span
    get_children: Find the direct children of a span
    get_ancestors: Walk from a span up to its root
    get_descendants: Collect every descendant of a span
    root_spans: Spans without a parent
    group_by_trace: Group spans by hex trace id
    get_spans_by_service: Group spans by resource service.name
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from otkit.core.model import Span, TraceExport
from otkit.core.values import InstrumentationScope, Resource

SpanKey = Tuple[bytes, bytes]


def walk_spans(
    export: TraceExport,
) -> Iterator[Tuple[Resource, Optional[InstrumentationScope], Span]]:
    """Iterate over every span together with its resource and scope.

    Traversal is depth-first over ResourceSpans -> ScopeSpans -> Span and
    preserves wire arrival order.
    """
    for resource_spans in export.resource_spans:
        for scope_spans in resource_spans.scope_spans:
            for span in scope_spans.spans:
                yield resource_spans.resource, scope_spans.scope, span


def flatten_spans(export: TraceExport) -> List[Span]:
    """Collect every span of an export into a list, in wire order.

    Example:
        >>> spans = flatten_spans(decode(payload))
        >>> [s.name for s in spans]
        ['GET /cart', 'SELECT cart']
    """
    return [span for _, _, span in walk_spans(export)]


def count_spans(export: TraceExport) -> int:
    return export.span_count


def _key(span: Span) -> SpanKey:
    return span.trace_id, span.span_id


def _as_id(value: Union[bytes, str]) -> bytes:
    return bytes.fromhex(value) if isinstance(value, str) else value


def _index(spans: Iterable[Span]) -> Dict[SpanKey, Span]:
    # First occurrence wins so lookups are stable for duplicated ids
    index: Dict[SpanKey, Span] = {}
    for span in spans:
        index.setdefault(_key(span), span)
    return index


def get_span_by_id(
    spans: Iterable[Span],
    span_id: Union[bytes, str],
    trace_id: Union[bytes, str, None] = None,
) -> Optional[Span]:
    """Find a span by its id.

    Args:
        spans: Spans to search
        span_id: Span id as bytes or hex string
        trace_id: Restrict the search to one trace (bytes or hex)

    Returns:
        The first matching span, or None
    """
    wanted_span = _as_id(span_id)
    wanted_trace = _as_id(trace_id) if trace_id is not None else None
    for span in spans:
        if span.span_id == wanted_span and (wanted_trace is None or span.trace_id == wanted_trace):
            return span
    return None


def get_parent(span: Span, all_spans: Iterable[Span]) -> Optional[Span]:
    """Find the parent of ``span``.

    Returns None for root spans and for spans whose parent is not part of
    ``all_spans`` (the parent may have been exported in another payload).
    """
    if span.parent_span_id is None:
        return None
    return _index(all_spans).get((span.trace_id, span.parent_span_id))


def get_children(span: Span, all_spans: Iterable[Span]) -> List[Span]:
    """Direct children of ``span`` in wire order."""
    return [
        s for s in all_spans
        if s.trace_id == span.trace_id and s.parent_span_id == span.span_id
    ]


def get_ancestors(span: Span, all_spans: Iterable[Span]) -> List[Span]:
    """Get all ancestor spans of a given span.

    The result is ordered from immediate parent to root. Traversal stops
    at the first missing parent, and at a cycle should a malformed payload
    contain one.

    Args:
        span: The span to find ancestors for
        all_spans: Spans used for parent lookup

    Returns:
        List of ancestor spans. Empty for a root span.
    """
    index = _index(all_spans)
    ancestors: List[Span] = []
    seen = {_key(span)}

    current = span
    while current.parent_span_id is not None:
        parent = index.get((current.trace_id, current.parent_span_id))
        if parent is None or _key(parent) in seen:
            break
        ancestors.append(parent)
        seen.add(_key(parent))
        current = parent

    return ancestors


def get_descendants(span: Span, all_spans: Iterable[Span]) -> List[Span]:
    """Collect every descendant of ``span`` in depth-first pre-order."""
    spans = list(all_spans)
    children: Dict[SpanKey, List[Span]] = {}
    for s in spans:
        if s.parent_span_id is not None:
            children.setdefault((s.trace_id, s.parent_span_id), []).append(s)

    descendants: List[Span] = []
    seen = {_key(span)}
    stack = list(reversed(children.get(_key(span), [])))
    while stack:
        current = stack.pop()
        if _key(current) in seen:
            continue
        seen.add(_key(current))
        descendants.append(current)
        stack.extend(reversed(children.get(_key(current), [])))
    return descendants


def root_spans(spans: Iterable[Span]) -> List[Span]:
    return [span for span in spans if span.is_root]


def group_by_trace(spans: Iterable[Span]) -> Dict[str, List[Span]]:
    """Group spans by lowercase hex trace id, keeping first-seen order."""
    groups: Dict[str, List[Span]] = {}
    for span in spans:
        groups.setdefault(span.trace_id_hex, []).append(span)
    return groups


def get_spans_by_service(export: TraceExport) -> Dict[str, List[Span]]:
    """Group spans by the service.name of their resource.

    Spans whose resource has no string service.name are grouped under
    ``"unknown"``.
    """
    groups: Dict[str, List[Span]] = {}
    for resource, _, span in walk_spans(export):
        groups.setdefault(resource.service_name or "unknown", []).append(span)
    return groups
