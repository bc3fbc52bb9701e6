"""Sandbox simulator that produces signed PayFast ITN bodies.

Useful for local development and tests: the bodies it emits are what
PayFast would POST to the notify URL, signed with the configured passphrase.
"""

import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Union

from ..fees import round2
from .signature import compute_itn_signature, encode_component, split_raw_body

Amount = Union[Decimal, int, float, str]


@dataclass
class SimulatorConfig:
    """Configuration for simulated notifications."""
    passphrase: str = ""
    merchant_id: str = "10000100"
    seed: Optional[int] = None  # Random seed for reproducible pf_payment_ids


class PayFastSimulator:
    """Builds ITN bodies in PayFast's field order with a valid signature."""

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self._rng = random.Random(self.config.seed)

    def next_pf_payment_id(self) -> str:
        return str(self._rng.randint(1_000_000, 9_999_999))

    def build_itn(
        self,
        m_payment_id: Optional[str],
        amount_gross: Amount,
        payment_status: str = "COMPLETE",
        pf_payment_id: Optional[str] = None,
        amount_fee: Optional[Amount] = None,
        item_name: str = "Church - General",
        token: Optional[str] = None,
        custom_str3: Optional[str] = None,
        name_first: str = "Thandi",
        name_last: str = "Mokoena",
        email_address: str = "thandi@example.com",
        extra: Optional[Dict[str, str]] = None,
    ) -> str:
        """Return a raw, signed ITN body.

        ``pf_payment_id`` is generated when not given. ``amount_fee`` is
        reported as PayFast does, as a negative number.
        """
        gross = round2(amount_gross)
        fields = [
            ("m_payment_id", m_payment_id or ""),
            ("pf_payment_id", pf_payment_id or self.next_pf_payment_id()),
            ("payment_status", payment_status),
            ("item_name", item_name),
            ("item_description", ""),
            ("amount_gross", f"{gross:.2f}"),
        ]
        if amount_fee is not None:
            fee = round2(amount_fee)
            fields.append(("amount_fee", f"{-abs(fee):.2f}"))
            fields.append(("amount_net", f"{gross - abs(fee):.2f}"))
        fields.extend([
            ("custom_str1", ""),
            ("custom_str3", custom_str3 or ""),
            ("name_first", name_first),
            ("name_last", name_last),
            ("email_address", email_address),
            ("merchant_id", self.config.merchant_id),
        ])
        if token:
            fields.append(("token", token))
        for key, value in (extra or {}).items():
            fields.append((key, value))

        body = "&".join(f"{key}={encode_component(value)}" for key, value in fields)
        signature = compute_itn_signature(body, self.config.passphrase)
        return f"{body}&signature={signature}"

    def resign(self, raw_body: str) -> str:
        """Replace the signature of an edited body with a valid one."""
        unsigned = "&".join(p for p in split_raw_body(raw_body) if not p.startswith("signature="))
        return f"{unsigned}&signature={compute_itn_signature(unsigned, self.config.passphrase)}"
