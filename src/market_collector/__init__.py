"""Market data collection engine for option-chain, VIX and FII/DII datasets."""

__version__ = "0.1.0"
