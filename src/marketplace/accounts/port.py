"""Seller directory port — read-only view of seller payment accounts."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class SellerPaymentAccountStatus:
    seller_id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    fee_rate_override: Decimal | None = None

    @property
    def can_receive_split_payments(self) -> bool:
        return self.charges_enabled and self.payouts_enabled


class SellerDirectory(ABC):
    @abstractmethod
    def payment_account(self, seller_id: str) -> SellerPaymentAccountStatus:
        """Return the seller's payment account snapshot.

        Sellers without a connected account report both flags as False.
        """
        ...

    @abstractmethod
    def contact_email(self, seller_id: str) -> str | None:
        ...
