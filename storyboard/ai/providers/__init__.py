"""Remote generation providers."""
