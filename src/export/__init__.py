"""Export package."""

from src.export.csv_export import (
    EXPORT_HEADER,
    export_filename,
    format_amount,
    parse_delimited_text,
    to_delimited_text,
)

__all__ = [
    "EXPORT_HEADER",
    "export_filename",
    "format_amount",
    "parse_delimited_text",
    "to_delimited_text",
]
