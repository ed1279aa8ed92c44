"""AppSentinel telemetry."""
