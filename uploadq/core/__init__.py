"""Core components of uploadq."""
