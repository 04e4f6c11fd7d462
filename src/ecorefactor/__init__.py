"""Editor-side client for backend smell detection and refactoring."""

__version__ = "0.3.0"
