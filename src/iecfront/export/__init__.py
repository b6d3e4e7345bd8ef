"""iecfront export: rendering syntax trees back to Structured Text.

Public API::

    from iecfront.export import format_statements
    st_text = format_statements(pou.body)
"""

from .st import STWriter, format_expression, format_statements, format_type_spec

__all__ = ["STWriter", "format_expression", "format_statements", "format_type_spec"]
