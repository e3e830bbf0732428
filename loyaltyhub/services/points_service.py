"""
Points Service for Loyalty Hub.

Awards and redemptions against the ledger:

- Only ACTIVE enrollments earn or spend points. Awarding never creates or
  reactivates an enrollment (NOT_ENROLLED instead).
- Every mutation is one unit of work: conditional balance update (ledger
  store), card tier sync, transaction log entry, card activity and the
  notifications describing it.
- Balances are read from the database on every call; nothing is cached.

Points are awarded as given. ``apply_multiplier=True`` opts into scaling the
award by the card's tier multiplier.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Any
from flask import current_app

from ..extensions import db
from ..models.user import User
from ..models.program import LoyaltyProgram, Reward
from ..models.loyalty_card import CardActivityType
from ..models.points import PointTransactionType
from ..models.notification import NotificationType
from ..models.payloads import PointsPayload
from ..utils.exceptions import (
    LoyaltyError,
    NotFoundError,
    ForbiddenError,
    NotEnrolledError,
    InsufficientPointsError,
    unexpected_error_result,
)
from ..utils.validation import coerce_id, coerce_points
from .ledger_store import LedgerStore
from .notification_service import NotificationService


class PointsService:
    """
    Central service for point awards, redemptions and balance reads.

    Usage:
        service = PointsService()

        # Award points
        result = service.award_points(customer_id, business_id, program_id, 150)

        # Redeem a reward
        result = service.redeem_reward(customer_id, program_id, reward_id)
    """

    def __init__(self, ledger: LedgerStore = None, notification_service: NotificationService = None):
        self.ledger = ledger or LedgerStore()
        self.notifications = notification_service or NotificationService()

    def _get_program(self, program_id: int) -> LoyaltyProgram:
        program = db.session.get(LoyaltyProgram, program_id)
        if not program:
            raise NotFoundError('Program', program_id)
        return program

    def _require_active(self, customer_id: int, program_id: int):
        enrollment = self.ledger.get_enrollment(customer_id, program_id)
        if enrollment is None or not enrollment.is_active:
            raise NotEnrolledError(customer_id, program_id)
        return enrollment

    # ==================== Award ====================

    def award_points(
        self,
        customer_id,
        business_id,
        program_id,
        points,
        description: str = None,
        apply_multiplier: bool = False
    ) -> Dict[str, Any]:
        """
        Award points to an ACTIVE enrollment.

        Args:
            customer_id: Customer receiving points
            business_id: Awarding business; must own the program
            program_id: Program the points belong to
            points: Positive whole number
            description: Ledger description
            apply_multiplier: Scale by the card's tier multiplier

        Returns:
            Dict with points_awarded, new balance and tier information
        """
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            business_id = coerce_id(business_id, 'business_id')
            program_id = coerce_id(program_id, 'program_id')
            points = coerce_points(points)

            program = self._get_program(program_id)
            if program.business_id != business_id:
                raise ForbiddenError('Program belongs to another business')
            self._require_active(customer_id, program_id)

            def work():
                amount = points
                if apply_multiplier:
                    card = self.ledger.get_card(customer_id, program_id)
                    multiplier = Decimal(str(card.points_multiplier)) if card else Decimal('1')
                    amount = int((Decimal(points) * multiplier).to_integral_value(rounding=ROUND_DOWN))

                enrollment, card, tier_change = self.ledger.apply_points(customer_id, program_id, amount)
                transaction = self.ledger.append_transaction(
                    customer_id,
                    business_id,
                    program_id,
                    amount,
                    PointTransactionType.AWARD,
                    description=description or f'Points awarded by {program.name}'
                )
                self.ledger.record_activity(
                    card, CardActivityType.EARN_POINTS, amount, description or 'Points earned'
                )

                created = [self.notifications.create_notification(
                    customer_id,
                    business_id,
                    NotificationType.POINTS_ADDED,
                    payload=PointsPayload(
                        program_id=program_id,
                        points=amount,
                        balance=enrollment.current_points,
                        program_name=program.name,
                        tier=card.tier
                    ),
                    variables={
                        'points': amount,
                        'balance': enrollment.current_points,
                        'program_name': program.name
                    }
                )]
                if tier_change:
                    created.append(self.notifications.notify_tier_change(card, tier_change, program.name))
                return enrollment, card, transaction, tier_change, amount, created

            enrollment, card, transaction, tier_change, amount, created = self.ledger.run_in_transaction(work)
            self.notifications.dispatch(created)

            current_app.logger.info(
                f"Awarded {amount} points to customer {customer_id} in program {program_id} "
                f"(balance {enrollment.current_points})"
            )
            return {
                'success': True,
                'points_awarded': amount,
                'balance': enrollment.current_points,
                'total_points_earned': enrollment.total_points_earned,
                'tier': card.tier,
                'tier_changed': tier_change is not None,
                'transaction_id': transaction.id
            }

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to award points: {e}")
            return unexpected_error_result(e, 'Failed to award points')

    # ==================== Redeem ====================

    def redeem_reward(self, customer_id, program_id, reward_id) -> Dict[str, Any]:
        """
        Redeem a reward from the program catalog.

        Zero-point rewards are allowed and still leave a REDEEM entry of 0.

        Returns:
            Dict with points_redeemed and the new balance
        """
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')
            reward_id = coerce_id(reward_id, 'reward_id')

            program = self._get_program(program_id)
            reward = Reward.query.filter_by(id=reward_id, program_id=program_id, is_active=True).first()
            if not reward:
                raise NotFoundError('Reward', reward_id)

            enrollment = self._require_active(customer_id, program_id)
            required = reward.points_required
            if enrollment.current_points < required:
                raise InsufficientPointsError(enrollment.current_points, required)

            customer = db.session.get(User, customer_id)

            def work():
                enrollment, card, tier_change = self.ledger.apply_points(customer_id, program_id, -required)
                transaction = self.ledger.append_transaction(
                    customer_id,
                    program.business_id,
                    program_id,
                    -required,
                    PointTransactionType.REDEEM,
                    reward_id=reward.id,
                    description=f'Redeemed: {reward.name}'
                )
                self.ledger.record_activity(
                    card, CardActivityType.REDEEM_POINTS, -required, f'Redeemed: {reward.name}'
                )

                payload = PointsPayload(
                    program_id=program_id,
                    points=required,
                    balance=enrollment.current_points,
                    program_name=program.name,
                    reward_id=reward.id,
                    reward_name=reward.name,
                    customer_id=customer_id
                )
                variables = {
                    'points': required,
                    'balance': enrollment.current_points,
                    'reward_name': reward.name,
                    'program_name': program.name,
                    'customer_name': customer.name if customer else ''
                }
                created = [
                    self.notifications.create_notification(
                        customer_id, program.business_id, NotificationType.REWARD_REDEEMED,
                        payload=payload, variables=variables
                    ),
                    self.notifications.create_notification(
                        program.business_id, program.business_id, NotificationType.REWARD_REDEEMED,
                        payload=payload, variables=variables, audience='business'
                    ),
                ]
                if tier_change:
                    created.append(self.notifications.notify_tier_change(card, tier_change, program.name))
                return enrollment, card, transaction, created

            enrollment, card, transaction, created = self.ledger.run_in_transaction(work)
            self.notifications.dispatch(created)

            current_app.logger.info(
                f"Customer {customer_id} redeemed reward {reward_id} for {required} points"
            )
            return {
                'success': True,
                'reward_id': reward_id,
                'points_redeemed': required,
                'balance': enrollment.current_points,
                'tier': card.tier,
                'transaction_id': transaction.id
            }

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to redeem reward: {e}")
            return unexpected_error_result(e, 'Failed to redeem reward')

    # ==================== Reads ====================

    def get_balance(self, customer_id, program_id) -> Dict[str, Any]:
        """Balance of one enrollment (any status)."""
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')

            enrollment = self.ledger.get_enrollment(customer_id, program_id)
            if enrollment is None:
                raise NotEnrolledError(customer_id, program_id)
            card = self.ledger.get_card(customer_id, program_id)

            return {
                'success': True,
                'customer_id': customer_id,
                'program_id': program_id,
                'balance': enrollment.current_points,
                'total_points_earned': enrollment.total_points_earned,
                'status': enrollment.status,
                'tier': card.tier if card else None
            }
        except LoyaltyError as e:
            return e.to_result()

    def get_history(self, customer_id, program_id, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Ledger entries of one enrollment, newest first."""
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            program_id = coerce_id(program_id, 'program_id')
            limit = max(1, min(int(limit), 200))
            offset = max(0, int(offset))

            transactions = self.ledger.history(customer_id, program_id, limit=limit, offset=offset)
            return {
                'success': True,
                'transactions': [t.to_dict() for t in transactions],
                'ledger_total': self.ledger.ledger_sum(customer_id, program_id)
            }
        except LoyaltyError as e:
            return e.to_result()
