"""papertrade: virtual-execution shadow of a liquidity-pool sniping strategy."""

__version__ = "0.1.0"
