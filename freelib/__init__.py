"""Catalogue e-book collections from INPX indexes, FB2 and EPUB files in an SQLite database."""

__version__ = "0.1.0"