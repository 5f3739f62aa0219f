"""
pumpbot - pump.fun bonding-curve trading and volume bot for Solana.
"""

__version__ = "1.0.0"
