"""Virtual try-on gateway: remote API, browser automation fallback, placeholder."""

__version__ = "1.0.0"
