"""Credit metering and quota enforcement for the document tools platform."""
