"""qmdsync command line."""
