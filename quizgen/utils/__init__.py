"""Text and type mapping helpers."""
