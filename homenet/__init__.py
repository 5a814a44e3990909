"""homenet: discovers home-automation devices and keeps their readings in range."""

__version__ = "0.1.0"
