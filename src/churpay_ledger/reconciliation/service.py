"""
ITN reconciliation service.

Ties the pieces together for one notification:

    verify signature -> parse -> resolve intent -> check amount
        -> ledger + subscription + giving link (one transaction)
        -> notify (after commit, best effort)

Only the signature check and parsing happen outside the database. Everything
that writes runs inside a single transaction, so a failure part way leaves no
trace and the gateway's retry starts from a clean slate.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError, DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import ItnSettings
from ..database import FundRepository, PaymentIntentStatus
from ..errors import ConflictAlreadyProcessed, TransientInfrastructureError
from ..gateway import ItnNotification, PayFastGateway, GatewayPaymentStatus
from ..notifications import Notifier, LoggingNotifier, GIVING_LINK_PAID
from .amounts import AmountReconciler
from .giving_links import GivingLinkUsageTracker
from .ledger import LedgerWriter
from .models import OutcomeType, ReconciliationOutcome
from .resolver import IntentResolver
from .subscriptions import SubscriptionStateMachine

logger = logging.getLogger(__name__)

# A lost insert race is retried once; the retry takes the replay branch.
MAX_ATTEMPTS = 2


class ItnReconciliationService:
    """Processes PayFast ITNs into the ledger."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: ItnSettings,
        notifier: Optional[Notifier] = None,
        gateway: Optional[PayFastGateway] = None,
    ):
        """Initialize the service.

        Args:
            session_factory: Factory for the sessions each attempt runs in.
            settings: Passphrase, debug flag and fee rates.
            notifier: Receives post-commit notifications. Logs them by default.
            gateway: Signature verifier. Built from ``settings`` if not given.
        """
        self.session_factory = session_factory
        self.settings = settings
        self.notifier = notifier or LoggingNotifier()
        self.gateway = gateway or PayFastGateway(
            settings.passphrase, debug=settings.debug, merchant_id=settings.merchant_id
        )
        self.amounts = AmountReconciler(settings.fees)
        self.subscriptions = SubscriptionStateMachine()

    async def handle(self, raw_body: str) -> ReconciliationOutcome:
        """Authenticate and reconcile one raw ITN body.

        Returns:
            What the notification did.

        Raises:
            AuthenticationError: Bad or missing signature.
            ValidationError: Malformed notification or amount mismatch.
            NotFoundError: No matching intent or subscription.
            TransientInfrastructureError: The database failed; nothing was committed.
        """
        notification = self.gateway.authenticate(raw_body)

        attempt = 0
        while True:
            attempt += 1
            try:
                outcome, notice = await self._reconcile(notification)
                break
            except ConflictAlreadyProcessed:
                outcome = ReconciliationOutcome(
                    outcome=OutcomeType.ALREADY_PROCESSED,
                    m_payment_id=notification.m_payment_id,
                )
                notice = None
                break
            except IntegrityError as e:
                if attempt >= MAX_ATTEMPTS:
                    logger.exception(
                        f"ITN {notification.m_payment_id} still conflicting after {attempt} attempts"
                    )
                    raise TransientInfrastructureError() from e
                logger.info(
                    f"ITN {notification.m_payment_id} lost a concurrent insert, retrying"
                )
            except (OperationalError, DBAPIError, asyncio.TimeoutError, OSError) as e:
                logger.exception(f"Database failure while reconciling ITN {notification.m_payment_id}")
                raise TransientInfrastructureError() from e

        logger.info(f"ITN reconciled: {outcome.to_log_dict()}")

        if notice is not None:
            await self._notify(notice)
        return outcome

    async def _reconcile(self, notification: ItnNotification):
        fees = self.settings.fees
        async with self.session_factory() as session:
            async with session.begin():
                resolved = await IntentResolver(session, fees).resolve(notification)
                intent = resolved.intent
                recurring = resolved.recurring

                self.amounts.check(intent, notification.amount_gross)

                ledger = LedgerWriter(session, fees, GivingLinkUsageTracker(session))
                outcome = ReconciliationOutcome(
                    outcome=OutcomeType.IGNORED,
                    m_payment_id=intent.m_payment_id,
                    payment_intent_id=intent.id,
                    recurring_giving_id=intent.recurring_giving_id,
                    intent_created=resolved.synthesized,
                )
                notice = None
                status = notification.payment_status

                if status == GatewayPaymentStatus.COMPLETE:
                    result = await ledger.record_success(intent, notification)
                    outcome.transaction_id = result.transaction.id
                    outcome.outcome = OutcomeType.RECORDED if result.created else OutcomeType.ALREADY_PROCESSED
                    if recurring is not None:
                        self.subscriptions.on_success(recurring, resolved.cycle_no, token=notification.token)
                    if result.created and intent.on_behalf_of_member_id:
                        notice = self._notice_for(intent, notification, result.transaction.id)

                elif status == GatewayPaymentStatus.FAILED:
                    if await ledger.record_unpaid(intent, notification, PaymentIntentStatus.FAILED):
                        outcome.outcome = OutcomeType.MARKED_FAILED
                    if recurring is not None:
                        self.subscriptions.on_failure(recurring, token=notification.token)

                elif status == GatewayPaymentStatus.CANCELLED:
                    if await ledger.record_unpaid(intent, notification, PaymentIntentStatus.CANCELLED):
                        outcome.outcome = OutcomeType.MARKED_CANCELLED
                    if recurring is not None:
                        self.subscriptions.on_cancelled(recurring)

                else:
                    logger.info(
                        f"ITN {intent.m_payment_id} has unhandled status "
                        f"{notification.raw_status!r}, acknowledging"
                    )

                await session.flush()
        return outcome, notice

    def _notice_for(self, intent, notification: ItnNotification, transaction_id: str) -> Dict[str, Any]:
        return {
            "member_id": intent.on_behalf_of_member_id,
            "payment_intent_id": intent.id,
            "transaction_id": transaction_id,
            "reference": intent.m_payment_id,
            "church_id": intent.church_id,
            "source": intent.source,
            "giving_link_id": intent.giving_link_id,
            "fund_id": intent.fund_id,
            "amount": Decimal(intent.amount),
            "payer_name": intent.payer_name or notification.payer_name or "Someone",
        }

    async def _notify(self, notice: Dict[str, Any]) -> None:
        """Tell the member someone gave on their behalf. Never raises."""
        try:
            fund_name = "a fund"
            async with self.session_factory() as session:
                fund = await FundRepository(session).get_by_id(notice["fund_id"])
                if fund is not None and (fund.name or "").strip():
                    fund_name = fund.name.strip()

            await self.notifier.create_notification(
                notice["member_id"],
                GIVING_LINK_PAID,
                "Someone gave for you",
                f"{notice['payer_name']} gave R {notice['amount']:.2f} to {fund_name}.",
                {
                    "paymentIntentId": notice["payment_intent_id"],
                    "transactionId": notice["transaction_id"],
                    "reference": notice["reference"],
                    "churchId": notice["church_id"],
                    "fundId": notice["fund_id"],
                    "givingLinkId": notice["giving_link_id"],
                    "amount": f"{notice['amount']:.2f}",
                    "fundName": fund_name,
                    "source": notice["source"],
                },
            )
        except Exception:
            logger.exception(f"Failed to notify member {notice['member_id']} for intent {notice['payment_intent_id']}")
