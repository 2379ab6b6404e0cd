"""Core query engine: enums and the predicate/filter/composition pipeline."""
