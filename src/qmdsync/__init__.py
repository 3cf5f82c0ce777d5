"""qmdsync - keeps a qmd search index in step with a document directory."""

__version__ = "0.1.0"
