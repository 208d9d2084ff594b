"""Gmail Declutter - classify mailbox clutter and move it to trash."""

__version__ = "0.1.0"
