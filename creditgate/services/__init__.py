"""Credit metering services."""
