"""Textual widgets and helpers for the clio-radio TUI."""
