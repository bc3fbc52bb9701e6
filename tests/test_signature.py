"""Tests for PayFast signature generation and ITN verification."""

import pytest

from churpay_ledger.errors import AuthenticationError
from churpay_ledger.gateway import (
    PayFastGateway,
    PayFastSimulator,
    SimulatorConfig,
    compute_itn_signature,
    encode_component,
    encode_form_query,
    extract_signature,
    generate_signature,
    itn_signature_base,
    verify_itn_signature,
)

ITN_BODY = "m_payment_id=abc&pf_payment_id=123&payment_status=COMPLETE&item_name=A+%26+B&amount_gross=103.25"


class TestEncoding:
    """Tests for form encoding."""

    def test_encode_component(self):
        """Test that spaces become '+' and reserved characters are escaped."""
        assert encode_component("a b") == "a+b"
        assert encode_component("a/b&c=d") == "a%2Fb%26c%3Dd"

    def test_encode_form_query_sorts_and_drops_blanks(self):
        """Test the checkout signing order."""
        query = encode_form_query({"b": " two ", "a": "one", "c": "", "d": None})
        assert query == "a=one&b=two"


class TestCheckoutSignature:
    """Tests for outbound checkout signatures."""

    def test_known_vector(self):
        """Test a signature computed independently."""
        params = {
            "merchant_id": "10000100",
            "merchant_key": "46f0cd694581a",
            "amount": "100.00",
            "item_name": "Test Item",
        }
        assert generate_signature(params, "jt7NOE43FZPn") == "8236f11f34f4294471f0c44340840af7"

    def test_signature_field_is_ignored(self):
        """Test that an existing signature does not feed into the digest."""
        params = {"amount": "100.00", "merchant_id": "10000100"}
        signed = dict(params, signature="deadbeef")
        assert generate_signature(params) == generate_signature(signed)


class TestItnSignature:
    """Tests for ITN verification over the raw body."""

    def test_base_string_keeps_raw_encoding(self):
        """Test that fragments are used exactly as sent."""
        body = f"{ITN_BODY}&signature=xyz"
        assert itn_signature_base(body) == ITN_BODY
        assert itn_signature_base(body, " my secret/pass ") == f"{ITN_BODY}&passphrase=my+secret%2Fpass"

    def test_known_vectors(self):
        """Test digests computed independently."""
        assert compute_itn_signature(ITN_BODY) == "5c7423666ff9c46143b8f2a4b9cd8785"
        assert compute_itn_signature(ITN_BODY, "my secret/pass") == "28c4e4a48addaed199d0c8c3abfd7781"

    def test_verify_accepts_any_case(self):
        """Test that the hex digest comparison ignores case."""
        lower = f"{ITN_BODY}&signature=28c4e4a48addaed199d0c8c3abfd7781"
        upper = f"{ITN_BODY}&signature=28C4E4A48ADDAED199D0C8C3ABFD7781"
        assert verify_itn_signature(lower, "my secret/pass")
        assert verify_itn_signature(upper, "my secret/pass")

    def test_signature_position_does_not_matter(self):
        """Test a signature placed before other fields."""
        body = "signature=5c7423666ff9c46143b8f2a4b9cd8785&" + ITN_BODY
        assert verify_itn_signature(body)

    def test_wrong_passphrase_fails(self):
        """Test that the passphrase is part of the digest."""
        body = f"{ITN_BODY}&signature=28c4e4a48addaed199d0c8c3abfd7781"
        assert not verify_itn_signature(body, "other")
        assert not verify_itn_signature(body)

    def test_missing_signature(self):
        """Test a body without a signature."""
        assert extract_signature(ITN_BODY) is None
        assert not verify_itn_signature(ITN_BODY)

    def test_single_character_change_fails(self):
        """Test that tampering with any character outside the signature is detected."""
        simulator = PayFastSimulator(SimulatorConfig(passphrase="pp", seed=1))
        body = simulator.build_itn("CP-1", "103.25")
        unsigned, signature = body.rsplit("&signature=", 1)
        assert verify_itn_signature(body, "pp")

        for i, ch in enumerate(unsigned):
            replacement = "X" if ch != "X" else "Y"
            tampered = unsigned[:i] + replacement + unsigned[i + 1:]
            assert not verify_itn_signature(f"{tampered}&signature={signature}", "pp"), i

    def test_debug_logging_masks_passphrase(self, caplog):
        """Test that debug output never contains the passphrase."""
        body = f"{ITN_BODY}&signature=28c4e4a48addaed199d0c8c3abfd7781"
        with caplog.at_level("DEBUG", logger="churpay_ledger.gateway.signature"):
            assert verify_itn_signature(body, "my secret/pass", debug=True)
        assert "my+secret%2Fpass" not in caplog.text
        assert "passphrase=***" in caplog.text


class TestPayFastGateway:
    """Tests for authenticate()."""

    def test_authenticate_returns_notification(self, simulator):
        """Test a correctly signed body."""
        gateway = PayFastGateway(simulator.config.passphrase)
        body = simulator.build_itn("CP-42", "103.25", pf_payment_id="9001")
        notification = gateway.authenticate(body)
        assert notification.m_payment_id == "CP-42"
        assert notification.pf_payment_id == "9001"

    def test_missing_signature(self):
        """Test that an unsigned body is rejected."""
        with pytest.raises(AuthenticationError) as exc_info:
            PayFastGateway("pp").authenticate(ITN_BODY)
        assert exc_info.value.detail == "missing signature"
        assert exc_info.value.status_code == 400

    def test_invalid_signature(self, simulator):
        """Test that a body signed with another passphrase is rejected."""
        body = simulator.build_itn("CP-42", "103.25")
        with pytest.raises(AuthenticationError) as exc_info:
            PayFastGateway("not-the-passphrase").authenticate(body)
        assert exc_info.value.detail == "invalid signature"

    def test_configured_merchant_accepted(self, simulator):
        """Test that an ITN for the configured merchant passes."""
        gateway = PayFastGateway(simulator.config.passphrase, merchant_id="10000100")
        notification = gateway.authenticate(simulator.build_itn("CP-42", "103.25"))
        assert notification.m_payment_id == "CP-42"

    def test_other_merchant_rejected(self, caplog):
        """Test that a validly signed ITN for another merchant is rejected."""
        other = PayFastSimulator(SimulatorConfig(passphrase="pp", merchant_id="10000999"))
        body = other.build_itn("CP-42", "103.25")
        with pytest.raises(AuthenticationError) as exc_info:
            PayFastGateway("pp", merchant_id="10000100").authenticate(body)
        assert exc_info.value.detail == "invalid merchant"
        assert "10000999" in caplog.text
