"""Command-line client for the emissions dashboard service."""
