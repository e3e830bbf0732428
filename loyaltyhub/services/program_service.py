"""
Program Service for Loyalty Hub.

Businesses manage their loyalty programs and reward catalogs here. Catalog
reads are cached (Flask-Caching); the cache is invalidated on every write.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from flask import current_app

from ..extensions import db
from ..models.user import User
from ..models.program import LoyaltyProgram, Reward, ProgramStatus
from ..models.enrollment import ProgramEnrollment
from ..models.loyalty_card import LoyaltyCard, CardActivity
from ..models.notification import (
    ApprovalRequest,
    ApprovalStatus,
    CustomerNotification,
    NotificationType,
)
from ..models.payloads import ProgramPayload
from ..utils.cache import cache, program_cache_key, invalidate_program, CATALOG_TIMEOUT
from ..utils.exceptions import (
    LoyaltyError,
    InvalidParametersError,
    NotFoundError,
    ForbiddenError,
    unexpected_error_result,
)
from ..utils.validation import coerce_id, coerce_points
from .notification_service import NotificationService


class ProgramService:
    """
    Loyalty program catalog management.

    Usage:
        service = ProgramService()
        result = service.create_program(business_id, 'Coffee Club',
                                        rewards=[{'name': 'Free coffee', 'points_required': 100}])
    """

    def __init__(self, notification_service: NotificationService = None):
        self.notifications = notification_service or NotificationService()

    def _get_business(self, business_id: int) -> User:
        business = db.session.get(User, business_id)
        if not business or not business.is_business:
            raise NotFoundError('Business', business_id)
        return business

    def _build_rewards(self, rewards: Optional[List[Dict[str, Any]]]) -> List[Reward]:
        built = []
        for index, item in enumerate(rewards or []):
            if not isinstance(item, dict):
                raise InvalidParametersError(f'rewards[{index}] must be an object', field='rewards')
            name = (item.get('name') or '').strip()
            if not name:
                raise InvalidParametersError(f'rewards[{index}].name is required', field='rewards')
            built.append(Reward(
                name=name,
                description=item.get('description'),
                points_required=coerce_points(
                    item.get('points_required', 0), 'points_required', allow_zero=True
                ),
                is_active=bool(item.get('is_active', True))
            ))
        return built

    # ==================== Create / Read ====================

    def create_program(
        self,
        business_id,
        name: str,
        description: str = None,
        requires_approval: bool = True,
        rewards: List[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create a program with its initial reward catalog.

        Args:
            business_id: Owning business user
            name: Program name
            description: Optional description
            requires_approval: Whether invites need customer approval
            rewards: List of {'name', 'points_required', 'description'?}

        Returns:
            Dict with the created program (including rewards)
        """
        try:
            business_id = coerce_id(business_id, 'business_id')
            name = (name or '').strip()
            if not name:
                raise InvalidParametersError('name is required', field='name')

            self._get_business(business_id)
            program = LoyaltyProgram(
                business_id=business_id,
                name=name,
                description=description,
                requires_approval=bool(requires_approval),
                status=ProgramStatus.ACTIVE.value
            )
            for reward in self._build_rewards(rewards):
                program.rewards.append(reward)

            db.session.add(program)
            db.session.commit()

            current_app.logger.info(f"Program {program.id} created by business {business_id}")
            return {'success': True, 'program': program.to_dict(include_rewards=True)}

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to create program: {e}")
            return unexpected_error_result(e, 'Failed to create program')

    def list_programs(self, business_id=None, include_inactive: bool = False) -> Dict[str, Any]:
        """List programs, optionally for one business."""
        try:
            query = LoyaltyProgram.query
            if business_id is not None:
                query = query.filter_by(business_id=coerce_id(business_id, 'business_id'))
            if not include_inactive:
                query = query.filter_by(status=ProgramStatus.ACTIVE.value)

            programs = query.order_by(LoyaltyProgram.created_at.desc(), LoyaltyProgram.id.desc()).all()
            return {
                'success': True,
                'programs': [p.to_dict() for p in programs],
                'total': len(programs)
            }
        except LoyaltyError as e:
            return e.to_result()

    def get_program(self, program_id) -> Dict[str, Any]:
        """Program with its reward catalog. Served from cache when warm."""
        try:
            program_id = coerce_id(program_id, 'program_id')
            key = program_cache_key(program_id)

            cached = cache.get(key)
            if cached is not None:
                return {'success': True, 'program': cached}

            program = db.session.get(LoyaltyProgram, program_id)
            if not program:
                raise NotFoundError('Program', program_id)

            data = program.to_dict(include_rewards=True)
            cache.set(key, data, timeout=CATALOG_TIMEOUT)
            return {'success': True, 'program': data}

        except LoyaltyError as e:
            return e.to_result()

    # ==================== Delete ====================

    def delete_program(self, program_id, business_id) -> Dict[str, Any]:
        """
        Delete a program owned by ``business_id``.

        Enrollments and cards of the program go with it; every enrolled
        customer gets a PROGRAM_DELETED notification. Approval requests still
        PENDING for the program are closed as EXPIRED and their notifications
        no longer ask for action. Point transactions are kept for audit.
        """
        try:
            program_id = coerce_id(program_id, 'program_id')
            business_id = coerce_id(business_id, 'business_id')

            program = db.session.get(LoyaltyProgram, program_id)
            if not program:
                raise NotFoundError('Program', program_id)
            if program.business_id != business_id:
                raise ForbiddenError('Program belongs to another business')

            business = db.session.get(User, business_id)
            customer_ids = [
                row.customer_id for row in ProgramEnrollment.query.filter_by(program_id=program_id).all()
            ]

            created = []
            for customer_id in customer_ids:
                created.append(self.notifications.create_notification(
                    customer_id,
                    business_id,
                    NotificationType.PROGRAM_DELETED,
                    payload=ProgramPayload(
                        program_id=program_id,
                        program_name=program.name,
                        business_name=business.name if business else None
                    ),
                    variables={
                        'program_name': program.name,
                        'business_name': business.name if business else 'A business'
                    }
                ))

            card_ids = [row.id for row in db.session.query(LoyaltyCard.id).filter_by(program_id=program_id).all()]
            if card_ids:
                CardActivity.query.filter(CardActivity.card_id.in_(card_ids)).delete(synchronize_session=False)
            LoyaltyCard.query.filter_by(program_id=program_id).delete(synchronize_session=False)
            ProgramEnrollment.query.filter_by(program_id=program_id).delete(synchronize_session=False)
            Reward.query.filter_by(program_id=program_id).delete(synchronize_session=False)
            closed = self._close_pending_requests(program_id)
            db.session.delete(program)
            db.session.commit()

            invalidate_program(program_id)
            self.notifications.dispatch(created)

            current_app.logger.info(
                f"Program {program_id} deleted by business {business_id} "
                f"({len(customer_ids)} enrollments removed, {closed} pending requests closed)"
            )
            return {
                'success': True,
                'program_id': program_id,
                'enrollments_removed': len(customer_ids),
                'requests_closed': closed,
                'deleted_at': datetime.utcnow().isoformat()
            }

        except LoyaltyError as e:
            db.session.rollback()
            return e.to_result()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to delete program {program_id}: {e}")
            return unexpected_error_result(e, 'Failed to delete program')

    def _close_pending_requests(self, program_id: int) -> int:
        """Expire PENDING requests about the program. No commit."""
        pending = ApprovalRequest.query.filter(
            ApprovalRequest.entity_id == str(program_id),
            ApprovalRequest.status == ApprovalStatus.PENDING.value
        )
        notification_ids = [row.notification_id for row in pending.all() if row.notification_id]
        if notification_ids:
            CustomerNotification.query.filter(
                CustomerNotification.id.in_(notification_ids)
            ).update({CustomerNotification.action_taken: True}, synchronize_session=False)
        return pending.update(
            {ApprovalRequest.status: ApprovalStatus.EXPIRED.value},
            synchronize_session=False
        )
