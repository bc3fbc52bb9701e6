"""PayFast ITN authentication and parsing."""

import logging
from typing import Optional

from ..errors import AuthenticationError
from .notification import ItnNotification, parse_notification, parse_params
from .signature import extract_signature, verify_itn_signature

logger = logging.getLogger(__name__)

PROVIDER = "payfast"


class PayFastGateway:
    """
    Authenticates inbound ITNs for one merchant account.

    Signature checks run on the raw body before anything is parsed, so a
    forged notification never reaches the database.
    """

    provider = PROVIDER

    def __init__(self, passphrase: str = "", debug: bool = False, merchant_id: Optional[str] = None):
        self.passphrase = (passphrase or "").strip()
        self.debug = debug
        self.merchant_id = (merchant_id or "").strip() or None

    def authenticate(self, raw_body: str) -> ItnNotification:
        """Verify the signature of ``raw_body`` and parse it.

        Raises:
            AuthenticationError: If the signature is missing or wrong, or the
                ITN names a merchant other than the configured one.
            ValidationError: If the authenticated body is malformed.
        """
        if self.debug:
            logger.debug(f"ITN raw body ({len(raw_body)} bytes): {raw_body[:2000]}")

        if not extract_signature(raw_body):
            raise AuthenticationError("missing signature")

        if not verify_itn_signature(raw_body, self.passphrase, debug=self.debug):
            m_payment_id = parse_params(raw_body).get("m_payment_id")
            logger.warning(f"ITN rejected, invalid signature (m_payment_id={m_payment_id})")
            raise AuthenticationError("invalid signature")

        if self.merchant_id:
            merchant_id = parse_params(raw_body).get("merchant_id", "")
            if merchant_id != self.merchant_id:
                logger.warning(
                    f"ITN rejected, merchant_id={merchant_id!r} does not match configured merchant"
                )
                raise AuthenticationError("invalid merchant")

        return parse_notification(raw_body)
