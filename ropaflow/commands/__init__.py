"""Command implementations behind the ``ropaflow`` CLI."""
