"""
Ledger Store - the single writer of point balances.

Owns ``program_enrollments.current_points``, the mirrored card points and the
append-only ``point_transactions`` log. Every workflow (direct enrollment,
approval responses, awards, redemptions) goes through this class, so the
storage rules live in one place:

- Balance changes are one conditional UPDATE
  (``current_points + delta >= 0`` and status ACTIVE). Two racing awards both
  land; a redemption can never overdraw.
- Enrollment activation and card issuance are get-or-create under the
  UNIQUE(customer_id, program_id) constraints of both tables. A unit of work
  that loses an insert race is rolled back and replayed once, and the replay
  finds the winner's rows.
- Reads are retried with exponential backoff (``retry_read``); writes are not.

The backing database is whatever the SQLAlchemy engine points at
(PostgreSQL in production, in-memory SQLite under ``TestingConfig``).
"""
import secrets
from datetime import datetime
from typing import Callable, Optional, Tuple, List, TypeVar

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models.enrollment import ProgramEnrollment, EnrollmentStatus
from ..models.loyalty_card import LoyaltyCard, CardActivity
from ..models.points import PointTransaction, PointTransactionType
from ..utils.exceptions import (
    NotEnrolledError,
    InsufficientPointsError,
    StorageError,
)
from ..utils.retry import retry_read
from .tier_service import DEFAULT_TIER, apply_tier

T = TypeVar('T')

CARD_NUMBER_ATTEMPTS = 5


class LedgerStore:
    """
    Storage boundary for enrollments, cards and the points ledger.

    Methods that write never commit; wrap them in ``run_in_transaction``.
    """

    # ==================== Unit of work ====================

    def run_in_transaction(self, work: Callable[[], T], conflict_retries: int = 1) -> T:
        """
        Run ``work`` and commit it as one transaction.

        On a uniqueness conflict the transaction is rolled back and ``work``
        is replayed (it must re-read its state). Any other error rolls back
        and propagates.
        """
        attempt = 0
        while True:
            try:
                result = work()
                db.session.commit()
                return result
            except IntegrityError as e:
                db.session.rollback()
                if attempt >= conflict_retries:
                    raise StorageError('Conflicting concurrent write', original_error=e)
                attempt += 1
                current_app.logger.info(f"Ledger write conflict, replaying unit of work (attempt {attempt})")
            except Exception:
                db.session.rollback()
                raise

    # ==================== Reads ====================

    @retry_read
    def get_enrollment(self, customer_id: int, program_id: int) -> Optional[ProgramEnrollment]:
        return ProgramEnrollment.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).first()

    @retry_read
    def get_card(self, customer_id: int, program_id: int) -> Optional[LoyaltyCard]:
        return LoyaltyCard.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).first()

    @retry_read
    def get_balance(self, customer_id: int, program_id: int) -> Optional[int]:
        """Current balance of an enrollment, or None when there is none."""
        return db.session.query(ProgramEnrollment.current_points).filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).scalar()

    @retry_read
    def ledger_sum(self, customer_id: int, program_id: int) -> int:
        """Signed sum of the transaction log for one enrollment."""
        total = db.session.query(
            func.coalesce(func.sum(PointTransaction.points), 0)
        ).filter(
            PointTransaction.customer_id == customer_id,
            PointTransaction.program_id == program_id
        ).scalar()
        return int(total or 0)

    @retry_read
    def history(
        self,
        customer_id: int,
        program_id: int,
        limit: int = 50,
        offset: int = 0
    ) -> List[PointTransaction]:
        return PointTransaction.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).order_by(
            PointTransaction.created_at.desc(),
            PointTransaction.id.desc()
        ).offset(offset).limit(limit).all()

    # ==================== Enrollment & card writes ====================

    def activate_enrollment(
        self,
        customer_id: int,
        business_id: int,
        program_id: int
    ) -> Tuple[ProgramEnrollment, LoyaltyCard, bool]:
        """
        Make the enrollment ACTIVE and make sure its card exists and is active.

        Idempotent: an already ACTIVE enrollment with a card is returned
        unchanged.

        Returns:
            (enrollment, card, card_created)
        """
        enrollment = ProgramEnrollment.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).with_for_update().first()

        now = datetime.utcnow()
        if enrollment is None:
            enrollment = ProgramEnrollment(
                customer_id=customer_id,
                program_id=program_id,
                business_id=business_id,
                status=EnrollmentStatus.ACTIVE.value,
                current_points=0,
                total_points_earned=0,
                enrolled_at=now,
                updated_at=now
            )
            db.session.add(enrollment)
        elif enrollment.status != EnrollmentStatus.ACTIVE.value:
            enrollment.status = EnrollmentStatus.ACTIVE.value
            enrollment.updated_at = now

        card = LoyaltyCard.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).first()

        card_created = False
        if card is None:
            card = LoyaltyCard(
                customer_id=customer_id,
                business_id=business_id,
                program_id=program_id,
                card_number=self.generate_card_number(customer_id, business_id),
                tier=DEFAULT_TIER.name,
                points=enrollment.current_points or 0,
                points_multiplier=DEFAULT_TIER.multiplier,
                benefits=list(DEFAULT_TIER.benefits),
                is_active=True
            )
            db.session.add(card)
            card_created = True
        elif not card.is_active:
            card.is_active = True

        # Surface uniqueness conflicts inside the unit of work
        db.session.flush()

        if not card_created:
            card.points = enrollment.current_points or 0
        apply_tier(card)

        return enrollment, card, card_created

    def deactivate_enrollment(self, enrollment: ProgramEnrollment) -> Optional[LoyaltyCard]:
        enrollment.status = EnrollmentStatus.INACTIVE.value
        enrollment.updated_at = datetime.utcnow()

        card = LoyaltyCard.query.filter_by(
            customer_id=enrollment.customer_id,
            program_id=enrollment.program_id
        ).first()
        if card:
            card.is_active = False
        return card

    def generate_card_number(self, customer_id: int, business_id: int) -> str:
        """
        Human-shareable card number: BBBB-CCCC-NNNNN.

        Business and customer ids (last four digits) plus a random part. The
        UNIQUE constraint on card_number is the final guard.
        """
        business_prefix = str(business_id).zfill(4)[-4:]
        customer_prefix = str(customer_id).zfill(4)[-4:]

        card_number = None
        for _ in range(CARD_NUMBER_ATTEMPTS):
            random_part = secrets.randbelow(90000) + 10000
            card_number = f'{business_prefix}-{customer_prefix}-{random_part}'
            exists = db.session.query(LoyaltyCard.id).filter_by(card_number=card_number).first()
            if not exists:
                return card_number
        return card_number

    # ==================== Balance writes ====================

    def apply_points(
        self,
        customer_id: int,
        program_id: int,
        delta: int
    ) -> Tuple[ProgramEnrollment, LoyaltyCard, Optional[Tuple[str, str]]]:
        """
        Atomically add ``delta`` (may be negative or zero) to an ACTIVE
        enrollment and its card, then re-derive the card tier.

        Raises:
            NotEnrolledError: no ACTIVE enrollment
            InsufficientPointsError: balance would drop below zero
            StorageError: enrollment is ACTIVE but its card is missing

        Returns:
            (enrollment, card, tier_change) where tier_change is
            (old_tier, new_tier) or None
        """
        now = datetime.utcnow()
        earned = delta if delta > 0 else 0

        updated = ProgramEnrollment.query.filter(
            ProgramEnrollment.customer_id == customer_id,
            ProgramEnrollment.program_id == program_id,
            ProgramEnrollment.status == EnrollmentStatus.ACTIVE.value,
            ProgramEnrollment.current_points + delta >= 0
        ).update({
            ProgramEnrollment.current_points: ProgramEnrollment.current_points + delta,
            ProgramEnrollment.total_points_earned: ProgramEnrollment.total_points_earned + earned,
            ProgramEnrollment.updated_at: now,
        }, synchronize_session=False)

        if updated == 0:
            enrollment = ProgramEnrollment.query.filter_by(
                customer_id=customer_id,
                program_id=program_id
            ).populate_existing().first()
            if enrollment is None or not enrollment.is_active:
                raise NotEnrolledError(customer_id, program_id)
            raise InsufficientPointsError(enrollment.current_points, -delta)

        card_updated = LoyaltyCard.query.filter(
            LoyaltyCard.customer_id == customer_id,
            LoyaltyCard.program_id == program_id
        ).update({
            LoyaltyCard.points: LoyaltyCard.points + delta,
            LoyaltyCard.updated_at: now,
        }, synchronize_session=False)

        if card_updated == 0:
            raise StorageError(
                f'Loyalty card missing for active enrollment (customer {customer_id}, program {program_id})'
            )

        enrollment = ProgramEnrollment.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).populate_existing().first()
        card = LoyaltyCard.query.filter_by(
            customer_id=customer_id,
            program_id=program_id
        ).populate_existing().first()

        tier_change = apply_tier(card)
        return enrollment, card, tier_change

    def append_transaction(
        self,
        customer_id: int,
        business_id: int,
        program_id: int,
        points: int,
        transaction_type: PointTransactionType,
        reward_id: int = None,
        description: str = None
    ) -> PointTransaction:
        """Append a ledger entry. ``points`` is the signed amount."""
        transaction = PointTransaction(
            customer_id=customer_id,
            business_id=business_id,
            program_id=program_id,
            points=points,
            transaction_type=transaction_type.value,
            reward_id=reward_id,
            description=description,
            created_at=datetime.utcnow()
        )
        db.session.add(transaction)
        return transaction

    def record_activity(self, card: LoyaltyCard, activity_type, points: int, description: str) -> CardActivity:
        activity = CardActivity(
            card_id=card.id,
            activity_type=activity_type.value,
            points=points,
            description=description
        )
        db.session.add(activity)
        return activity
