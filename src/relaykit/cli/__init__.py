"""relay command line interface."""
