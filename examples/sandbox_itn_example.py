"""
Walk-through of ITN reconciliation against a throwaway SQLite database.

Creates a church, a fund and a pending payment intent the way the checkout
flow would, then feeds simulated PayFast notifications through the
reconciliation service: a first delivery, a redelivery and a tampered body.

Run with:
    python examples/sandbox_itn_example.py
"""
import asyncio
import logging

from churpay_ledger.config import FeeConfig, ItnSettings
from churpay_ledger.database import (
    Church,
    Fund,
    PaymentIntent,
    IntentSource,
    create_async_engine,
    create_tables,
    make_session_factory,
)
from churpay_ledger.errors import ReconciliationError
from churpay_ledger.fees import calculate_fees
from churpay_ledger.gateway import PayFastSimulator, SimulatorConfig
from churpay_ledger.reconciliation import ItnReconciliationService

PASSPHRASE = "sandbox-passphrase"


async def seed_intent(session_factory, fees: FeeConfig) -> PaymentIntent:
    breakdown = calculate_fees("250.00", fees)
    async with session_factory() as session:
        async with session.begin():
            church = Church(name="Grace Chapel")
            session.add(church)
            await session.flush()
            fund = Fund(church_id=church.id, code="building", name="Building Fund")
            session.add(fund)
            await session.flush()
            intent = PaymentIntent(
                m_payment_id="CP-EXAMPLE-0001",
                church_id=church.id,
                fund_id=fund.id,
                amount=breakdown.amount,
                platform_fee_amount=breakdown.platform_fee_amount,
                platform_fee_pct=breakdown.platform_fee_pct,
                platform_fee_fixed=breakdown.platform_fee_fixed,
                amount_gross=breakdown.amount_gross,
                superadmin_cut_amount=breakdown.superadmin_cut_amount,
                superadmin_cut_pct=breakdown.superadmin_cut_pct,
                source=IntentSource.DIRECT_APP.value,
                payer_name="Thandi Mokoena",
            )
            session.add(intent)
    print(f"Pending intent {intent.m_payment_id}: R {breakdown.amount} + R {breakdown.platform_fee_amount} fee")
    return intent


async def main():
    fees = FeeConfig()
    engine = create_async_engine(database_url="sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    session_factory = make_session_factory(engine)

    intent = await seed_intent(session_factory, fees)
    service = ItnReconciliationService(session_factory, ItnSettings(passphrase=PASSPHRASE, fees=fees))
    simulator = PayFastSimulator(SimulatorConfig(passphrase=PASSPHRASE))

    body = simulator.build_itn(intent.m_payment_id, intent.amount_gross, amount_fee="6.32")

    # First delivery records the gift, the redelivery is acknowledged
    for attempt in ("first delivery", "redelivery"):
        outcome = await service.handle(body)
        print(f"{attempt}: {outcome.model_dump_json(exclude_none=True)}")

    # A body altered in transit is refused before the database is touched
    try:
        await service.handle(body.replace("Thandi", "Someone"))
    except ReconciliationError as e:
        print(f"tampered: HTTP {e.status_code} {e.detail}")

    await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(main())
