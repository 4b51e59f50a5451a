"""Algorithms over the store: diffing, layout, queries and hunk transplant."""
