"""In-memory seller directory for development and testing."""

from decimal import Decimal

from marketplace.accounts.port import SellerDirectory, SellerPaymentAccountStatus


class FakeSellerDirectory(SellerDirectory):
    def __init__(self):
        self.accounts: dict[str, SellerPaymentAccountStatus] = {}
        self.emails: dict[str, str] = {}

    def register(
        self,
        seller_id: str,
        email: str | None = None,
        charges_enabled: bool = True,
        payouts_enabled: bool = True,
        fee_rate_override=None,
    ) -> SellerPaymentAccountStatus:
        status = SellerPaymentAccountStatus(
            seller_id=str(seller_id),
            charges_enabled=charges_enabled,
            payouts_enabled=payouts_enabled,
            fee_rate_override=Decimal(str(fee_rate_override)) if fee_rate_override is not None else None,
        )
        self.accounts[str(seller_id)] = status
        self.emails[str(seller_id)] = email or f"seller-{seller_id}@example.com"
        return status

    def payment_account(self, seller_id: str) -> SellerPaymentAccountStatus:
        return self.accounts.get(str(seller_id), SellerPaymentAccountStatus(seller_id=str(seller_id)))

    def contact_email(self, seller_id: str) -> str | None:
        return self.emails.get(str(seller_id))

    def reset(self):
        self.accounts.clear()
        self.emails.clear()
