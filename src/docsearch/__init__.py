"""Keyword search over the PDF, Word and PowerPoint files of a Google Drive."""

__version__ = "0.1.0"
