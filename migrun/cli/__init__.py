"""migrun command line interface."""
