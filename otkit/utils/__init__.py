"""
otkit.utils - Helpers for navigating decoded span trees.

This subpackage contains utility functions:
- tree: Span lookup, parent/child/ancestor navigation and grouping
"""

from otkit.utils.tree import (
    walk_spans,
    flatten_spans,
    count_spans,
    get_span_by_id,
    get_parent,
    get_children,
    get_ancestors,
    get_descendants,
    root_spans,
    group_by_trace,
    get_spans_by_service,
)

__all__ = [
    "walk_spans",
    "flatten_spans",
    "count_spans",
    "get_span_by_id",
    "get_parent",
    "get_children",
    "get_ancestors",
    "get_descendants",
    "root_spans",
    "group_by_trace",
    "get_spans_by_service",
]
