"""External integrations for payment processing."""
from .coinpayments_client import CoinPaymentsClient
from .ipn_verifier import IPNVerifier

__all__ = ["CoinPaymentsClient", "IPNVerifier"]
