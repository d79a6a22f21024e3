"""
Lesson pricing with the bundle discount.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PriceCalculator:
    """
    Price of a lesson purchase.

    Whenever a purchase completes a bundle (the student's paid lessons plus
    the purchased quantity is a multiple of ``bundle_size``), a flat
    discount of ``discount_rate`` of one full bundle is subtracted,
    regardless of how many lessons are actually bought.
    """
    unit_price: Decimal = Decimal("15.00")
    bundle_size: int = 5
    discount_rate: Decimal = Decimal("0.05")

    def __post_init__(self):
        if self.unit_price <= 0:
            raise ValueError(f"unit_price must be greater than zero, got {self.unit_price}")
        if self.bundle_size < 1:
            raise ValueError(f"bundle_size must be at least 1, got {self.bundle_size}")

    def completes_bundle(self, quantity: int, all_paid_lessons: int = 0) -> bool:
        return (all_paid_lessons + quantity) % self.bundle_size == 0

    def bundle_discount(self) -> Decimal:
        return self.unit_price * self.bundle_size * Decimal(self.discount_rate)

    def total_price(self, quantity: int, all_paid_lessons: int = 0) -> Decimal:
        """
        Total to charge, rounded half-to-even to cents.

        Raises:
            ValueError: If quantity is not positive
        """
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {quantity}")

        total = self.unit_price * quantity
        if self.completes_bundle(quantity, all_paid_lessons):
            total -= self.bundle_discount()

        return total.quantize(CENTS, rounding=ROUND_HALF_EVEN)
