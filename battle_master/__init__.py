"""Battle Master — AI-assisted D&D combat encounter designer."""

__version__ = "0.1.0"
