"""
Consultation Flow

Workflow controller for the consultation request lifecycle. Every public
operation runs in exactly one database transaction: the request row is locked,
status changes are conditional on the expected current status, and each change
appends a RequestTransition in the same transaction. A failure anywhere rolls
the whole operation back.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from decimal import Decimal
from typing import Any
from typing import AsyncIterator
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from consult_api.errors import ConflictError
from consult_api.errors import ForbiddenError
from consult_api.errors import NotFoundError
from consult_api.errors import StateError
from consult_api.errors import ValidationError
from consult_api.payments.gateway import PaymentGateway
from consult_api.settings import Settings
from consult_api.workflow.db import Repositories
from consult_api.workflow.enums import AdvisorStatus
from consult_api.workflow.enums import AssignmentStatus
from consult_api.workflow.enums import Decision
from consult_api.workflow.enums import OrderStatus
from consult_api.workflow.enums import RequestStatus
from consult_api.workflow.enums import Role
from consult_api.workflow.models import ConsultationRequest
from consult_api.workflow.models import FileReference
from consult_api.workflow.models import Identity
from consult_api.workflow.models import Order
from consult_api.workflow.models import RequestAssignment
from consult_api.workflow.pricing import MAX_AMOUNT
from consult_api.workflow.pricing import is_valid_amount
from consult_api.workflow.pricing import quote
from consult_api.workflow.pricing import split_payout
from consult_api.workflow.ranking import RankingFilters
from consult_api.workflow.ranking import rank_advisors
from consult_api.workflow.state_machine import CANCELLABLE
from consult_api.workflow.state_machine import DASHBOARD_ACTIVE
from consult_api.workflow.state_machine import DASHBOARD_COMPLETED
from consult_api.workflow.state_machine import DASHBOARD_NEW
from consult_api.workflow.state_machine import FILE_ATTACHABLE
from consult_api.workflow.state_machine import assert_transition

RepositoryFactory = Callable[[Any], Repositories]


class ConsultationWorkflow:
    """
    Consultation request workflow controller.

    Holds no request state of its own; everything lives in the database and is
    re-read under a row lock by each operation.
    """

    def __init__(
        self,
        pool,
        gateway: PaymentGateway,
        settings: Settings,
        repositories: RepositoryFactory = Repositories.for_connection,
    ):
        """
        Initialize the workflow controller.

        Args:
            pool: Pool exposing transaction() as an async context manager yielding a connection
            gateway: Payment gateway used to reserve order payments
            settings: Application settings (fan-out, fee split, limits)
            repositories: Builds the repository set for a transaction's connection
        """
        self.pool = pool
        self.gateway = gateway
        self.settings = settings
        self.repositories = repositories

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[Repositories]:
        async with self.pool.transaction() as conn:
            yield self.repositories(conn)

    # ════════════════════════════════════════════════════════════════════════
    # Guards
    # ════════════════════════════════════════════════════════════════════════

    @staticmethod
    async def _load_request(repos: Repositories, request_id: int, lock: bool = True) -> ConsultationRequest:
        if lock:
            request = await repos.requests.get_for_update(request_id)
        else:
            request = await repos.requests.get(request_id)
        if request is None:
            raise NotFoundError(f"Consultation request {request_id} not found", request_id=request_id)
        return request

    @staticmethod
    def _require_owner(identity: Identity, request: ConsultationRequest) -> None:
        if identity.is_admin or request.user_id == identity.user_id:
            return
        raise ForbiddenError("You do not have access to this consultation request", request_id=request.id)

    @staticmethod
    def _require_participant(identity: Identity, request: ConsultationRequest) -> None:
        """Owner, admin or the advisor assigned to the request."""
        if identity.is_admin or request.user_id == identity.user_id:
            return
        if identity.is_advisor and request.advisor_id == identity.advisor_id:
            return
        raise ForbiddenError("You do not have access to this consultation request", request_id=request.id)

    @staticmethod
    def _require_advisor(identity: Identity) -> int:
        if not identity.is_advisor:
            raise ForbiddenError("Only advisors can perform this action")
        return identity.advisor_id

    @staticmethod
    def _require_admin(identity: Identity) -> None:
        if not identity.is_admin:
            raise ForbiddenError("Only administrators can perform this action")

    @staticmethod
    def _require_system(identity: Identity) -> None:
        if not identity.is_system:
            raise ForbiddenError("Only the payment gateway or an administrator can perform this action")

    async def _move(
        self,
        repos: Repositories,
        request: ConsultationRequest,
        to_status: RequestStatus,
        identity: Identity,
        advisor_id: Optional[int] = None,
        stamp: Optional[str] = None,
    ) -> ConsultationRequest:
        """
        Apply one status transition and log it.

        Raises:
            StateError: If the edge is not in the transition table
            ConflictError: If the row left request.status since it was read
        """
        assert_transition(request.status, to_status)
        updated = await repos.requests.transition(
            request.id, request.status, to_status, advisor_id=advisor_id, stamp=stamp
        )
        if updated is None:
            raise ConflictError(
                "Consultation request was modified concurrently",
                request_id=request.id,
                expected_status=request.status.value,
            )
        await repos.transitions.append(
            request.id, request.status, to_status, identity.user_id, identity.role.value
        )
        logger.info(
            "Consultation request transitioned",
            request_id=request.id,
            from_status=request.status.value,
            to_status=RequestStatus(to_status).value,
            actor=identity.describe(),
        )
        return updated

    async def _offer_top(
        self,
        repos: Repositories,
        request: ConsultationRequest,
        limit: int,
        filters: Optional[RankingFilters] = None,
    ) -> List[Dict[str, Any]]:
        """Offer the request to the best-ranked advisors that have no assignment on it yet."""
        existing = await repos.assignments.list_by_request(request.id)
        ranked = rank_advisors(
            await repos.advisors.list_active(),
            tier_priority_weight=request.priority_weight,
            filters=filters,
            exclude_ids={assignment.advisor_id for assignment in existing},
        )

        base_rank = await repos.assignments.max_rank(request.id)
        offers = []
        for candidate in ranked[:limit]:
            assignment = await repos.assignments.create(
                request.id, candidate.advisor.id, base_rank + len(offers) + 1
            )
            if assignment is None:
                continue
            offers.append(
                {
                    "assignment": assignment,
                    "advisor_id": candidate.advisor.id,
                    "name": candidate.advisor.name,
                    "specialty": candidate.advisor.specialty,
                    "score": candidate.score,
                    "rank": assignment.rank,
                }
            )
        return offers

    # ════════════════════════════════════════════════════════════════════════
    # Request creation and matching
    # ════════════════════════════════════════════════════════════════════════

    async def create_request(
        self,
        identity: Identity,
        summary: str,
        amount: Optional[Decimal] = None,
        files: Optional[List[FileReference]] = None,
    ) -> Dict[str, Any]:
        """
        Create a consultation request and offer it to the top-ranked advisors.

        Args:
            identity: Requesting user
            summary: What the user needs advice on
            amount: Gross price in KWD, if already known
            files: File references to attach

        Returns:
            Dict with the request id, status and the offers made

        Raises:
            ValidationError: Empty or oversized summary, non-positive amount, or caller is not a user
        """
        if identity.role not in (Role.USER, Role.ADMIN):
            raise ValidationError("Only users can submit consultation requests", role=identity.role.value)

        summary = (summary or "").strip()
        if not summary:
            raise ValidationError("Summary is required")
        if len(summary) > self.settings.max_summary_length:
            raise ValidationError(
                f"Summary must be at most {self.settings.max_summary_length} characters",
                length=len(summary),
            )
        if amount is not None and not is_valid_amount(amount):
            raise ValidationError(
                f"Amount must be greater than zero and at most {MAX_AMOUNT}", amount=str(amount)
            )

        async with self._unit_of_work() as repos:
            policy = await repos.tiers.get_policy(identity.tier)
            pricing = quote(amount, policy.discount_rate_bps)

            request = await repos.requests.create(
                user_id=identity.user_id,
                summary=summary,
                status=RequestStatus.SUBMITTED,
                user_tier=identity.tier,
                priority_weight=policy.priority_weight,
                discount_rate_bps=policy.discount_rate_bps,
                gross_amount=pricing.gross_amount if pricing else None,
                discount_amount=pricing.discount_amount if pricing else None,
                net_amount=pricing.net_amount if pricing else None,
                currency=self.settings.default_currency,
                files=files or [],
            )
            await repos.transitions.append(
                request.id, None, RequestStatus.SUBMITTED, identity.user_id, identity.role.value
            )
            request = await self._move(repos, request, RequestStatus.PENDING_ADVISOR, identity)

            offers = await self._offer_top(repos, request, self.settings.initial_offer_fanout)
            if not offers:
                logger.warning("No eligible advisor for consultation request", request_id=request.id)

        logger.info(
            "Consultation request created",
            request_id=request.id,
            user_id=identity.user_id,
            tier=identity.tier.value,
            offers=len(offers),
        )
        return {"id": request.id, "status": request.status, "request": request, "offers": offers}

    async def assign_advisor(
        self, identity: Identity, request_id: int, advisor_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Offer a request to a specific advisor, or to the first active advisor.

        Idempotent: an advisor that already has an assignment on the request gets it back unchanged.
        """
        self._require_admin(identity)

        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            if request.status not in (RequestStatus.SUBMITTED, RequestStatus.PENDING_ADVISOR):
                raise StateError(
                    f"Cannot assign an advisor while the request is {request.status.value}",
                    request_id=request_id,
                    status=request.status.value,
                )

            if advisor_id is not None:
                advisor = await repos.advisors.get(advisor_id)
                if advisor is None or advisor.status != AdvisorStatus.ACTIVE:
                    raise NotFoundError(f"Active advisor {advisor_id} not found", advisor_id=advisor_id)
            else:
                active = await repos.advisors.list_active()
                if not active:
                    raise NotFoundError("No active advisor available")
                advisor = active[0]

            existing = await repos.assignments.get_by_request_and_advisor(request_id, advisor.id)
            if existing is not None:
                return {"assignment": existing, "request_id": request_id, "status": request.status, "created": False}

            if request.status == RequestStatus.SUBMITTED:
                request = await self._move(repos, request, RequestStatus.PENDING_ADVISOR, identity)

            rank = await repos.assignments.max_rank(request_id) + 1
            assignment = await repos.assignments.create(request_id, advisor.id, rank)

        logger.info("Advisor assigned", request_id=request_id, advisor_id=advisor.id, rank=rank)
        return {"assignment": assignment, "request_id": request_id, "status": request.status, "created": True}

    async def match_advisors(
        self, identity: Identity, request_id: int, filters: Optional[RankingFilters] = None
    ) -> Dict[str, Any]:
        """
        Re-rank advisors with filters and re-offer the request.

        Every still-offered assignment is expired first. Advisors that already hold
        an assignment on the request (in any status) are not offered it again.
        """
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            if request.status != RequestStatus.PENDING_ADVISOR:
                raise StateError(
                    "Advisors can only be re-matched while the request awaits an advisor",
                    request_id=request_id,
                    status=request.status.value,
                )

            expired = await repos.assignments.expire_offered(request_id)
            results = await self._offer_top(repos, request, self.settings.initial_offer_fanout, filters)

        logger.info(
            "Advisors re-matched",
            request_id=request_id,
            expired=len(expired),
            offered=len(results),
        )
        return {"request_id": request_id, "results": results}

    # ════════════════════════════════════════════════════════════════════════
    # Offers
    # ════════════════════════════════════════════════════════════════════════

    async def advisor_respond(self, identity: Identity, assignment_id: int, decision: Decision) -> Dict[str, Any]:
        """
        Accept or decline an offer.

        Args:
            identity: Responding advisor
            assignment_id: Offer being answered
            decision: accept or decline

        Returns:
            Dict with the assignment status and the request status

        Raises:
            NotFoundError: Assignment does not exist
            ForbiddenError: Assignment belongs to another advisor
            ConflictError: Offer already resolved, or the request already left pending_advisor
        """
        advisor_id = self._require_advisor(identity)
        decision = Decision(decision)

        async with self._unit_of_work() as repos:
            assignment = await repos.assignments.get(assignment_id)
            if assignment is None:
                raise NotFoundError(f"Assignment {assignment_id} not found", assignment_id=assignment_id)
            if assignment.advisor_id != advisor_id:
                raise ForbiddenError("This offer belongs to another advisor", assignment_id=assignment_id)

            request = await self._load_request(repos, assignment.request_id)

            if decision == Decision.ACCEPT and request.status != RequestStatus.PENDING_ADVISOR:
                raise ConflictError(
                    "Consultation request is no longer awaiting an advisor",
                    request_id=request.id,
                    status=request.status.value,
                )

            target = AssignmentStatus.ACCEPTED if decision == Decision.ACCEPT else AssignmentStatus.DECLINED
            resolved = await repos.assignments.respond(assignment_id, target)
            if resolved is None:
                raise ConflictError(
                    "Offer was already answered",
                    assignment_id=assignment_id,
                    status=assignment.status.value,
                )

            if decision == Decision.ACCEPT:
                request = await self._move(
                    repos, request, RequestStatus.ACCEPTED, identity, advisor_id=advisor_id
                )
                await repos.assignments.expire_offered(request.id)

        logger.info(
            "Advisor responded to offer",
            assignment_id=assignment_id,
            request_id=request.id,
            advisor_id=advisor_id,
            decision=decision.value,
        )
        return {
            "assignment_id": assignment_id,
            "request_id": request.id,
            "status": resolved.status,
            "request_status": request.status,
        }

    async def promote_next_candidate(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """
        Offer the request to the next-ranked advisor that has not been offered it yet.

        Raises:
            StateError: Request is not awaiting an advisor
            NotFoundError: No eligible candidate remains
        """
        self._require_admin(identity)

        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            if request.status != RequestStatus.PENDING_ADVISOR:
                raise StateError(
                    "Only requests awaiting an advisor can be promoted",
                    request_id=request_id,
                    status=request.status.value,
                )

            offers = await self._offer_top(repos, request, 1)
            if not offers:
                raise NotFoundError("No remaining advisor candidates", request_id=request_id)

        offer = offers[0]
        logger.info(
            "Next advisor candidate promoted",
            request_id=request_id,
            advisor_id=offer["advisor_id"],
            rank=offer["rank"],
        )
        return offer

    async def expire_offers(
        self, identity: Identity, older_than_minutes: Optional[int] = None
    ) -> List[RequestAssignment]:
        """Expire offers older than the cutoff on requests that still await an advisor."""
        self._require_system(identity)
        minutes = older_than_minutes if older_than_minutes is not None else self.settings.offer_ttl_minutes
        if minutes < 0:
            raise ValidationError("older_than_minutes must not be negative", older_than_minutes=minutes)
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)

        async with self._unit_of_work() as repos:
            expired = await repos.assignments.expire_stale(cutoff)

        logger.info("Stale offers expired", count=len(expired), older_than_minutes=minutes)
        return expired

    # ════════════════════════════════════════════════════════════════════════
    # Payment
    # ════════════════════════════════════════════════════════════════════════

    async def reserve_payment(
        self, identity: Identity, request_id: int, amount: Optional[Decimal] = None
    ) -> Dict[str, Any]:
        """
        Create a pending order for an accepted request and reserve it with the gateway.

        Args:
            identity: Request owner
            request_id: Accepted request
            amount: Gross amount; the request's snapshot discount is applied to it.
                Defaults to the price captured at creation.

        Returns:
            Dict with the order id and its status

        Raises:
            StateError: Request status is not exactly accepted
            ValidationError: No amount given and none captured, or amount not positive
            UpstreamError: Gateway failure (nothing is persisted)
        """
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            if request.status != RequestStatus.ACCEPTED:
                raise StateError(
                    f"Payment can only be reserved for an accepted request (current: {request.status.value})",
                    request_id=request_id,
                    status=request.status.value,
                )

            if amount is not None:
                if not is_valid_amount(amount):
                    raise ValidationError(
                        f"Amount must be greater than zero and at most {MAX_AMOUNT}", amount=str(amount)
                    )
                pricing = quote(amount, request.discount_rate_bps)
                request = await repos.requests.set_pricing(
                    request.id, pricing.gross_amount, pricing.discount_amount, pricing.net_amount
                )
            elif request.net_amount is None:
                raise ValidationError("No amount was given and the request has no price", request_id=request_id)

            gross_amount = request.gross_amount if request.gross_amount is not None else request.net_amount
            split = split_payout(gross_amount, self.settings.platform_fee_bps)
            order = await repos.orders.create(
                user_id=request.user_id,
                request_id=request.id,
                advisor_id=request.advisor_id,
                gross_amount=gross_amount,
                discount_amount=request.discount_amount or Decimal("0"),
                net_amount=request.net_amount,
                currency=request.currency,
                platform_fee=split.platform_fee,
                advisor_payout=split.advisor_payout,
            )

            reservation = await self.gateway.reserve(order)
            order = await repos.orders.record_reservation(
                order.id, reservation.gateway, reservation.reference, reservation.payment_url
            )

            request = await self._move(repos, request, RequestStatus.PAYMENT_RESERVED, identity)

        logger.info(
            "Payment reserved",
            request_id=request_id,
            order_id=order.id,
            amount=str(order.net_amount),
            gateway=order.gateway,
        )
        return {
            "order_id": order.id,
            "status": order.status,
            "request_status": request.status,
            "payment_url": order.payment_url,
        }

    async def confirm_payment(
        self,
        identity: Identity,
        order_id: int,
        success: bool,
        gateway_payment_id: Optional[str] = None,
        gateway_reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply the gateway's verdict on a reserved payment.

        Success completes the order and moves the request to paid. Failure marks the
        order failed and returns the request to accepted so payment can be retried.

        Raises:
            NotFoundError: Unknown order
            ConflictError: Order is not pending (already confirmed, failed or cancelled)
        """
        self._require_system(identity)

        async with self._unit_of_work() as repos:
            order = await repos.orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found", order_id=order_id)

            request = await self._load_request(repos, order.request_id)
            order = await repos.orders.get_for_update(order_id)
            if order.status != OrderStatus.PENDING:
                raise ConflictError(
                    f"Order {order_id} is already {order.status.value}",
                    order_id=order_id,
                    status=order.status.value,
                )

            outcome = OrderStatus.COMPLETED if success else OrderStatus.FAILED
            settled = await repos.orders.settle(order_id, outcome, gateway_payment_id, gateway_reference)
            if settled is None:
                raise ConflictError(f"Order {order_id} was settled concurrently", order_id=order_id)

            if success:
                request = await self._move(repos, request, RequestStatus.PAID, identity, stamp="paid_at")
            else:
                request = await self._move(repos, request, RequestStatus.ACCEPTED, identity)

        log = logger.info if success else logger.warning
        log(
            "Payment confirmation applied",
            order_id=order_id,
            request_id=request.id,
            order_status=settled.status.value,
            request_status=request.status.value,
        )
        return {
            "order_id": order_id,
            "order_status": settled.status,
            "request_id": request.id,
            "status": request.status,
        }

    async def _completed_order(self, repos: Repositories, request: ConsultationRequest) -> Order:
        order = await repos.orders.latest_for_request(request.id)
        if order is None or order.status != OrderStatus.COMPLETED:
            raise StateError(
                "Payment has not been confirmed by the gateway",
                request_id=request.id,
                order_status=order.status.value if order else None,
            )
        return order

    # ════════════════════════════════════════════════════════════════════════
    # Session and settlement
    # ════════════════════════════════════════════════════════════════════════

    async def start_session(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """Move a paid request to in_progress."""
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_participant(identity, request)
            assert_transition(request.status, RequestStatus.IN_PROGRESS)
            await self._completed_order(repos, request)
            request = await self._move(repos, request, RequestStatus.IN_PROGRESS, identity)

        return {"request_id": request_id, "status": request.status}

    async def complete_session(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """Move an in-progress request to completed."""
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_participant(identity, request)
            request = await self._move(repos, request, RequestStatus.COMPLETED, identity, stamp="completed_at")

        return {"request_id": request_id, "status": request.status}

    async def _release(
        self,
        repos: Repositories,
        request: ConsultationRequest,
        order: Order,
        identity: Identity,
        platform_fee_bps: Optional[int],
    ) -> Dict[str, Any]:
        bps = platform_fee_bps if platform_fee_bps is not None else self.settings.platform_fee_bps
        split = split_payout(order.gross_amount, bps)
        order = await repos.orders.record_release(order.id, split.platform_fee, split.advisor_payout)
        request = await self._move(repos, request, RequestStatus.RELEASED, identity, stamp="released_at")

        logger.info(
            "Advisor payout released",
            request_id=request.id,
            order_id=order.id,
            advisor_id=request.advisor_id,
            platform_fee=str(split.platform_fee),
            advisor_payout=str(split.advisor_payout),
        )
        return {
            "request_id": request.id,
            "order_id": order.id,
            "status": request.status,
            "platform_fee": split.platform_fee,
            "advisor_payout": split.advisor_payout,
            "currency": order.currency,
        }

    async def release_payment(
        self, identity: Identity, request_id: int, platform_fee_bps: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Credit the advisor's share of a completed consultation.

        Args:
            identity: Request owner or administrator
            request_id: Completed request
            platform_fee_bps: Platform commission override (default from settings)
        """
        if platform_fee_bps is not None and not 0 <= platform_fee_bps <= 10000:
            raise ValidationError("platform_fee_bps must be between 0 and 10000", platform_fee_bps=platform_fee_bps)

        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            assert_transition(request.status, RequestStatus.RELEASED)
            order = await self._completed_order(repos, request)
            return await self._release(repos, request, order, identity, platform_fee_bps)

    async def complete_and_release(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """
        Complete an in-progress session and release the advisor's share in one transaction.

        Raises:
            StateError: Payment not confirmed, or request not in_progress
        """
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            order = await self._completed_order(repos, request)
            request = await self._move(repos, request, RequestStatus.COMPLETED, identity, stamp="completed_at")
            return await self._release(repos, request, order, identity, None)

    # ════════════════════════════════════════════════════════════════════════
    # Closing, cancellation, files
    # ════════════════════════════════════════════════════════════════════════

    async def cancel_request(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """Cancel a request that has not been paid yet."""
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            if request.status not in CANCELLABLE:
                raise StateError(
                    f"A {request.status.value} request cannot be cancelled",
                    request_id=request_id,
                    status=request.status.value,
                )

            expired = await repos.assignments.expire_offered(request_id)
            cancelled_orders = await repos.orders.cancel_pending(request_id)
            request = await self._move(repos, request, RequestStatus.CANCELLED, identity)

        logger.info(
            "Consultation request cancelled",
            request_id=request_id,
            expired_offers=len(expired),
            cancelled_orders=len(cancelled_orders),
        )
        return {"request_id": request_id, "status": request.status}

    async def close_request(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            request = await self._move(repos, request, RequestStatus.CLOSED, identity, stamp="closed_at")

        return {"request_id": request_id, "status": request.status}

    async def rate_advisor(
        self, identity: Identity, request_id: int, score: int, comment: Optional[str] = None
    ) -> Dict[str, Any]:
        """Rate the advisor of a closed request (1-5) and move it to rated."""
        if not 1 <= score <= 5:
            raise ValidationError("Score must be between 1 and 5", score=score)

        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_owner(identity, request)
            assert_transition(request.status, RequestStatus.RATED)
            if request.advisor_id is None:
                raise StateError("Request has no advisor to rate", request_id=request_id)

            rating = await repos.ratings.create(request_id, request.advisor_id, request.user_id, score, comment)
            request = await self._move(repos, request, RequestStatus.RATED, identity, stamp="rated_at")

        logger.info("Advisor rated", request_id=request_id, advisor_id=rating.advisor_id, score=score)
        return {"request_id": request_id, "status": request.status, "rating_id": rating.id}

    async def attach_files(
        self, identity: Identity, request_id: int, files: List[FileReference]
    ) -> Dict[str, Any]:
        """Append file references (deduplicated by file id) to an active request."""
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id)
            self._require_participant(identity, request)
            if request.status not in FILE_ATTACHABLE:
                raise StateError(
                    f"Files cannot be attached while the request is {request.status.value}",
                    request_id=request_id,
                    status=request.status.value,
                )

            known = {file.file_id for file in request.files}
            merged = list(request.files)
            for file in files:
                if file.file_id not in known:
                    merged.append(file)
                    known.add(file.file_id)
            request = await repos.requests.set_files(request_id, merged)

        return {"request_id": request_id, "files": request.files}

    # ════════════════════════════════════════════════════════════════════════
    # Queries
    # ════════════════════════════════════════════════════════════════════════

    async def list_requests(self, identity: Identity) -> List[ConsultationRequest]:
        async with self._unit_of_work() as repos:
            return await repos.requests.list_by_user(identity.user_id)

    async def get_request(self, identity: Identity, request_id: int) -> Dict[str, Any]:
        """
        Load a request with the assignments the caller may see.

        The owner sees every assignment; an advisor that was offered the request
        sees only their own.
        """
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id, lock=False)
            assignments = await repos.assignments.list_by_request(request_id)

        if identity.is_admin or request.user_id == identity.user_id:
            visible = assignments
        elif identity.is_advisor:
            visible = [assignment for assignment in assignments if assignment.advisor_id == identity.advisor_id]
            if not visible:
                raise ForbiddenError("You do not have access to this consultation request", request_id=request_id)
        else:
            raise ForbiddenError("You do not have access to this consultation request", request_id=request_id)

        return {**request.model_dump(), "assignments": visible}

    async def list_transitions(self, identity: Identity, request_id: int) -> List[Any]:
        async with self._unit_of_work() as repos:
            request = await self._load_request(repos, request_id, lock=False)
            self._require_owner(identity, request)
            return await repos.transitions.list_by_request(request_id)

    async def advisor_assignments(self, identity: Identity) -> List[RequestAssignment]:
        advisor_id = self._require_advisor(identity)
        async with self._unit_of_work() as repos:
            return await repos.assignments.list_by_advisor(advisor_id)

    async def partner_dashboard(self, identity: Identity) -> Dict[str, Any]:
        """
        Group the advisor's requests into new, active and completed.

        New requests are those still offered to this advisor; active and completed
        ones are only those this advisor accepted.
        """
        advisor_id = self._require_advisor(identity)
        async with self._unit_of_work() as repos:
            pairs = await repos.requests.list_for_advisor(advisor_id)

        buckets: Dict[str, List[Dict[str, Any]]] = {"new_orders": [], "active_orders": [], "completed_orders": []}
        for request, assignment in pairs:
            if request.status in DASHBOARD_NEW and assignment.status == AssignmentStatus.OFFERED:
                bucket = "new_orders"
            elif request.advisor_id != advisor_id:
                continue
            elif request.status in DASHBOARD_ACTIVE:
                bucket = "active_orders"
            elif request.status in DASHBOARD_COMPLETED:
                bucket = "completed_orders"
            else:
                continue
            buckets[bucket].append(
                {
                    "assignment_id": assignment.id,
                    "assignment_status": assignment.status,
                    "request_id": request.id,
                    "status": request.status,
                    "summary": request.summary,
                    "user_id": request.user_id,
                    "advisor_id": request.advisor_id,
                    "created_at": request.created_at,
                }
            )

        return {
            "advisor_id": advisor_id,
            "stats": {
                "new_count": len(buckets["new_orders"]),
                "active_count": len(buckets["active_orders"]),
                "completed_count": len(buckets["completed_orders"]),
            },
            **buckets,
        }

    async def partner_earnings(self, identity: Identity) -> Dict[str, Any]:
        """Totals over the advisor's released orders."""
        advisor_id = self._require_advisor(identity)
        async with self._unit_of_work() as repos:
            totals = await repos.orders.released_totals(advisor_id)

        return {
            "advisor_id": advisor_id,
            "order_count": totals["order_count"],
            "gross_amount": totals["gross"],
            "platform_fee": totals["platform_fee"],
            "net_amount": totals["payout"],
            "currency": self.settings.default_currency,
        }
