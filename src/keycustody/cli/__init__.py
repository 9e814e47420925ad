"""CLI for keycustody."""
