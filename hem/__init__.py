"""HEM - Hook Execution Manager for OpenNebula."""

__version__ = "0.1.0"
