"""settlor: margined options-settlement engine."""

__version__ = "0.1.0"
