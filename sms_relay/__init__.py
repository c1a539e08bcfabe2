"""SMS verification-code relay: extract codes from inbound SMS and cache the latest per sender."""

__version__ = "1.0.0"
