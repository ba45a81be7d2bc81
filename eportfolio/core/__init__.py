"""Core authentication components."""
