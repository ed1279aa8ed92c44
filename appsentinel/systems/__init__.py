"""AppSentinel systems."""
