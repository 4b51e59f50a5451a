"""Reference commit/tree store: hashing, trees, merges, transactions, revsets."""
