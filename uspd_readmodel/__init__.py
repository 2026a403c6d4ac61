"""USPD read-model engine: mintable capacity, collateralization ratios, caching."""

__version__ = "0.1.0"
