"""revgraph CLI subcommands."""
