from urllib.parse import urlencode

from .models import PaymentTransaction


class PlaceholderGateway:
    """Stand-in for the payment gateway: only builds an opaque checkout URL."""

    def __init__(self, checkout_url: str = "https://gateway.payment.com/checkout"):
        self.checkout_url = checkout_url

    def checkout_url_for(self, transaction: PaymentTransaction) -> str:
        query = urlencode({"token": transaction.transaction_id, "amount": str(transaction.amount)})
        return f"{self.checkout_url}?{query}"
