"""Non-custodial Stellar/Soroban payment relay."""

__version__ = "0.1.0"
