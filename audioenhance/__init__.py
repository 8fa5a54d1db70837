"""Local audio enhancement jobs driven through an external media engine."""

__version__ = "0.1.0"
