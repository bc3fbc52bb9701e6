"""PayFast signature helpers.

PayFast signs two different strings:

* Checkout redirects are signed over the non-blank fields sorted by key,
  each value trimmed and form-encoded.
* ITNs are signed over the body exactly as PayFast sent it. The base string
  is rebuilt from the raw fragments, never from parsed values, because
  re-encoding parsed values does not reliably reproduce the original bytes.
"""

import hmac
import hashlib
import logging
from typing import Any, Mapping, Optional, List
from urllib.parse import quote_plus, unquote_plus

logger = logging.getLogger(__name__)

SIGNATURE_FIELD = "signature"


def encode_component(value: Any) -> str:
    """Form-encode a value: spaces become '+', every reserved character is escaped."""
    return quote_plus(str(value), safe="")


def encode_form_query(params: Mapping[str, Any]) -> str:
    """Encode checkout fields the way PayFast expects for redirect signing."""
    entries = [
        (str(key), str(value).strip())
        for key, value in params.items()
        if value is not None and str(value) != ""
    ]
    entries.sort(key=lambda item: item[0])
    return "&".join(f"{key}={encode_component(value)}" for key, value in entries)


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


def generate_signature(params: Mapping[str, Any], passphrase: str = "") -> str:
    """Signature for a checkout redirect built from ``params``."""
    unsigned = {k: v for k, v in params.items() if k != SIGNATURE_FIELD}
    base = encode_form_query(unsigned)
    passphrase = (passphrase or "").strip()
    if passphrase:
        base = f"{base}&passphrase={encode_component(passphrase)}"
    return _md5(base)


def split_raw_body(raw_body: str) -> List[str]:
    """Split a raw form body into its ``key=value`` fragments, in order."""
    return [part for part in raw_body.split("&") if part]


def extract_signature(raw_body: str) -> Optional[str]:
    """Return the decoded ``signature`` value from a raw body, if present."""
    for part in split_raw_body(raw_body):
        if part.startswith(f"{SIGNATURE_FIELD}="):
            value = unquote_plus(part[len(SIGNATURE_FIELD) + 1:]).strip()
            return value or None
    return None


def itn_signature_base(raw_body: str, passphrase: str = "") -> str:
    """Rebuild the string PayFast signed for an ITN body."""
    unsigned = [
        part for part in split_raw_body(raw_body)
        if not part.startswith(f"{SIGNATURE_FIELD}=")
    ]
    base = "&".join(unsigned)
    passphrase = (passphrase or "").strip()
    if passphrase:
        base = f"{base}&passphrase={encode_component(passphrase)}"
    return base


def compute_itn_signature(raw_body: str, passphrase: str = "") -> str:
    """MD5 hex digest over the rebuilt ITN base string."""
    return _md5(itn_signature_base(raw_body, passphrase))


def verify_itn_signature(raw_body: str, passphrase: str = "", debug: bool = False) -> bool:
    """Check the ``signature`` field of a raw ITN body.

    Args:
        raw_body: The body exactly as received, not re-serialized.
        passphrase: Merchant passphrase configured in PayFast, may be empty.
        debug: Log the base string (passphrase masked) and both digests.

    Returns:
        True if the supplied signature matches, compared case-insensitively.
    """
    received = extract_signature(raw_body)
    if not received:
        return False

    computed = compute_itn_signature(raw_body, passphrase)
    if debug:
        base = itn_signature_base(raw_body, passphrase)
        passphrase = (passphrase or "").strip()
        if passphrase:
            base = base.replace(encode_component(passphrase), "***")
        logger.debug(f"ITN signature check: submitted={received} computed={computed} base={base}")

    return hmac.compare_digest(computed.lower().encode("utf-8"), received.lower().encode("utf-8"))
