"""weightbench command line."""
