"""Sync WooCommerce products with a Google Sheets spreadsheet."""

from sheetsync.version import __version__

__all__ = ["__version__"]
