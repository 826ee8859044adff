"""
PDF export for finished Socially story packages.
"""

from .builder import PAGE_SIZES, StorybookPDFBuilder

__all__ = ["PAGE_SIZES", "StorybookPDFBuilder"]
