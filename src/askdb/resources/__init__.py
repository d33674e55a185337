"""Data files bundled with AskDB (sample schema)."""
