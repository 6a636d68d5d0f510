"""
Purchase Service Clients

HTTP clients for external collaborators.
"""

from .payment_provider_client import PaymentProviderClient, sign_params

__all__ = ["PaymentProviderClient", "sign_params"]
