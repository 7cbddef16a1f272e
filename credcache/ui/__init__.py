"""Terminal output for the credcache CLI."""

from .theme import DEFAULT_PALETTE, console, render_header
from .output import mask_token, render_error, render_success, render_status_table

__all__ = [
    "DEFAULT_PALETTE",
    "console",
    "render_header",
    "mask_token",
    "render_error",
    "render_success",
    "render_status_table",
]
