"""
Invoice Pro - Source Package

A single-user invoice utility: create, edit, list, delete and export
commercial invoices, persisted locally and usable offline.

DESIGN PRINCIPLES:
1. One owner for the invoice collection; everyone else gets copies
2. Every committed change is flushed explicitly, never as a side effect
3. Stored data is validated record by record, not trusted blindly
4. Storage and export failures are reported, never fatal
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Invoice Pro Team"
