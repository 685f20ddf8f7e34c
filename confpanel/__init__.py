"""
Hierarchical settings query engine

Resolves dotted keys against a static panel/section/option schema, merges schema
defaults with persisted overrides, and renders the result in classic, full or
export shape as JSON, YAML or plain text.
"""

__version__ = "0.1.0"
