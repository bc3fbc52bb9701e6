"""Checks the charged amount against what the intent expects."""

import logging
from decimal import Decimal

from ..config import FeeConfig
from ..database import PaymentIntent
from ..errors import ValidationError
from ..fees import calculate_fees, round2

logger = logging.getLogger(__name__)


class AmountReconciler:
    """Exact comparison of the reported gross amount, no tolerance band."""

    def __init__(self, fee_config: FeeConfig):
        self.fee_config = fee_config

    def expected_gross(self, intent: PaymentIntent) -> Decimal:
        """Gross amount the payer should have been charged.

        Uses the stored snapshot. Only intents created before snapshots
        existed fall back to recomputing from the base amount.
        """
        if intent.amount_gross is not None:
            return round2(intent.amount_gross)
        if intent.platform_fee_amount is not None:
            return round2(round2(intent.amount) + round2(intent.platform_fee_amount))
        try:
            return calculate_fees(intent.amount, self.fee_config).amount_gross
        except ValueError:
            raise ValidationError("invalid amount")

    def check(self, intent: PaymentIntent, reported_gross: Decimal) -> Decimal:
        """Raise unless ``reported_gross`` equals the expected gross amount.

        Returns:
            The expected gross amount.

        Raises:
            ValidationError: On any difference, however small.
        """
        expected = self.expected_gross(intent)
        if round2(reported_gross) != expected:
            logger.warning(
                f"ITN amount mismatch for {intent.m_payment_id}: "
                f"reported={round2(reported_gross)} expected={expected}"
            )
            raise ValidationError("amount mismatch")
        return expected
