"""PayFast gateway: signatures, notification parsing and a sandbox simulator."""

from .signature import (
    encode_component,
    encode_form_query,
    generate_signature,
    itn_signature_base,
    compute_itn_signature,
    extract_signature,
    verify_itn_signature,
)
from .notification import (
    GatewayPaymentStatus,
    ItnNotification,
    parse_notification,
    parse_params,
)
from .payfast import PayFastGateway, PROVIDER
from .simulator import PayFastSimulator, SimulatorConfig

__all__ = [
    "encode_component",
    "encode_form_query",
    "generate_signature",
    "itn_signature_base",
    "compute_itn_signature",
    "extract_signature",
    "verify_itn_signature",
    "GatewayPaymentStatus",
    "ItnNotification",
    "parse_notification",
    "parse_params",
    "PayFastGateway",
    "PROVIDER",
    "PayFastSimulator",
    "SimulatorConfig",
]
