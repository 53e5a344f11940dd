"""Result writers for scores, singular values and loading panels."""

from .writers import (
    format_score_rows,
    write_loading_panel,
    write_singular_values,
)

__all__ = [
    "format_score_rows",
    "write_loading_panel",
    "write_singular_values",
]
