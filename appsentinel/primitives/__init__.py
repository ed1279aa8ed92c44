"""AppSentinel shared primitives."""
