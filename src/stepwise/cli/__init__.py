"""stepwise command line interface."""
