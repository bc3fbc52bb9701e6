"""Shared test fixtures and configuration."""

import os
import pytest
from decimal import Decimal
from typing import Any, Dict, List, Optional

# Set up test environment variables before importing modules
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from sqlalchemy import select

from churpay_ledger.config import FeeConfig, ItnSettings
from churpay_ledger.database import (
    Church,
    Fund,
    PaymentIntent,
    Transaction,
    RecurringGiving,
    GivingLink,
    PaymentIntentStatus,
    IntentSource,
    RecurringGivingStatus,
    create_async_engine,
    create_tables,
    make_session_factory,
)
from churpay_ledger.fees import calculate_fees
from churpay_ledger.gateway import PayFastSimulator, SimulatorConfig
from churpay_ledger.notifications import Notifier
from churpay_ledger.reconciliation import ItnReconciliationService

PASSPHRASE = "jt7NOE43FZPn"


class RecordingNotifier(Notifier):
    """Keeps every notification in memory."""

    def __init__(self, fail: bool = False):
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    async def create_notification(self, member_id, type, title, body, data=None):
        if self.fail:
            raise RuntimeError("push service unavailable")
        self.calls.append({
            "member_id": member_id,
            "type": type,
            "title": title,
            "body": body,
            "data": data,
        })


class Seeder:
    """Creates committed rows the way the admin and checkout flows would."""

    def __init__(self, session_factory, fee_config: FeeConfig):
        self.session_factory = session_factory
        self.fee_config = fee_config
        self.church: Optional[Church] = None
        self.fund: Optional[Fund] = None

    async def _add(self, obj):
        async with self.session_factory() as session:
            async with session.begin():
                session.add(obj)
        return obj

    async def church_and_fund(self):
        self.church = await self._add(Church(name="Grace Chapel"))
        self.fund = await self._add(Fund(church_id=self.church.id, code="general", name="General Fund"))
        return self.church, self.fund

    async def intent(
        self,
        amount: str = "100.00",
        m_payment_id: Optional[str] = None,
        snapshot: bool = True,
        **fields,
    ) -> PaymentIntent:
        if self.fund is None:
            await self.church_and_fund()
        values = {
            "m_payment_id": m_payment_id or f"CP-{os.urandom(6).hex().upper()}",
            "church_id": self.church.id,
            "fund_id": self.fund.id,
            "amount": Decimal(amount),
            "status": PaymentIntentStatus.PENDING.value,
            "source": IntentSource.DIRECT_APP.value,
            "payer_name": "Thandi Mokoena",
        }
        if snapshot:
            breakdown = calculate_fees(amount, self.fee_config)
            values.update(
                platform_fee_amount=breakdown.platform_fee_amount,
                platform_fee_pct=breakdown.platform_fee_pct,
                platform_fee_fixed=breakdown.platform_fee_fixed,
                amount_gross=breakdown.amount_gross,
                superadmin_cut_amount=breakdown.superadmin_cut_amount,
                superadmin_cut_pct=breakdown.superadmin_cut_pct,
            )
        values.update(fields)
        return await self._add(PaymentIntent(**values))

    async def recurring(
        self,
        amount: str = "100.00",
        cycles: int = 0,
        cycles_completed: int = 0,
        status: RecurringGivingStatus = RecurringGivingStatus.ACTIVE,
        payfast_token: Optional[str] = None,
        **fields,
    ) -> RecurringGiving:
        if self.fund is None:
            await self.church_and_fund()
        breakdown = calculate_fees(amount, self.fee_config)
        values = {
            "member_id": "member-1",
            "church_id": self.church.id,
            "fund_id": self.fund.id,
            "status": status.value,
            "cycles": cycles,
            "cycles_completed": cycles_completed,
            "donation_amount": breakdown.amount,
            "platform_fee_amount": breakdown.platform_fee_amount,
            "gross_amount": breakdown.amount_gross,
            "payfast_token": payfast_token,
        }
        values.update(fields)
        return await self._add(RecurringGiving(**values))

    async def giving_link(self, max_uses: int = 1, **fields) -> GivingLink:
        if self.fund is None:
            await self.church_and_fund()
        values = {
            "token": os.urandom(8).hex(),
            "requester_member_id": "member-requester",
            "church_id": self.church.id,
            "fund_id": self.fund.id,
            "amount_fixed": Decimal("100.00"),
            "max_uses": max_uses,
        }
        values.update(fields)
        return await self._add(GivingLink(**values))

    async def get(self, model, obj_id):
        async with self.session_factory() as session:
            return await session.get(model, obj_id)

    async def all(self, model, **filters) -> list:
        async with self.session_factory() as session:
            stmt = select(model)
            for key, value in filters.items():
                stmt = stmt.where(getattr(model, key) == value)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def transactions(self) -> List[Transaction]:
        return await self.all(Transaction)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(database_url="sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def fee_config() -> FeeConfig:
    return FeeConfig()


@pytest.fixture
def settings(fee_config) -> ItnSettings:
    return ItnSettings(passphrase=PASSPHRASE, fees=fee_config)


@pytest.fixture
def simulator() -> PayFastSimulator:
    """Signs ITN bodies with the test passphrase."""
    return PayFastSimulator(SimulatorConfig(passphrase=PASSPHRASE, seed=42))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(session_factory, settings, notifier) -> ItnReconciliationService:
    return ItnReconciliationService(session_factory, settings, notifier=notifier)


@pytest.fixture
async def seed(session_factory, fee_config) -> Seeder:
    seeder = Seeder(session_factory, fee_config)
    await seeder.church_and_fund()
    return seeder
