"""XSLT-based visualization helpers (no GUI dependencies)."""
