"""Command-line harness: argument routing and terminal rendering."""
