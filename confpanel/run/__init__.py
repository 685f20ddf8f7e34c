"""
Invocation layer: CLI and query runner.
"""

from .runner import QueryResult, build_context, format_document, run_query

__all__ = ["QueryResult", "build_context", "format_document", "run_query"]
