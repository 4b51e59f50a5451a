"""Domain models for revgraph."""
