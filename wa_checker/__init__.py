"""Bulk WhatsApp number checker: QR-linked session, single-flight lookup jobs, spreadsheet export."""

__version__ = "0.1.0"
