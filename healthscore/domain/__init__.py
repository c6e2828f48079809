"""Domain models and static reference tables, free of I/O."""
