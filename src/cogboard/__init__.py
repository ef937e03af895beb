"""Balance board centre-of-gravity acquisition and buffering."""

__version__ = "0.1.0"
