"""CoinPayments payment-intake and IPN confirmation service."""

__version__ = "1.0.0"
