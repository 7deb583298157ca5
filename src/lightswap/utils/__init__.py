"""Utility modules for lightswap."""

from lightswap.utils.formatting import format_sats, number_with_commas

__all__ = ["format_sats", "number_with_commas"]
