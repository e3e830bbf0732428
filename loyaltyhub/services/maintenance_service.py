"""
Maintenance Tasks Service for Loyalty Hub.

Background and operator jobs:
- Expired approval sweep (PENDING past expires_at -> EXPIRED)
- Ledger verification (balances vs. transaction log, missing cards)

These tasks can be triggered by:
1. The APScheduler job registered in utils/scheduler.py
2. Flask CLI commands (for cron jobs)

Verification only reports. Nothing here repairs data.
"""

from datetime import datetime
from typing import Dict, Any
from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models.program import LoyaltyProgram
from ..models.enrollment import ProgramEnrollment, EnrollmentStatus
from ..models.loyalty_card import LoyaltyCard
from ..models.points import PointTransaction
from ..models.notification import ApprovalRequest, ApprovalRequestType, ApprovalStatus


class MaintenanceService:
    """
    Service for running scheduled/maintenance tasks.
    """

    # ==================== APPROVAL EXPIRY ====================

    def expire_stale_approvals(self, now: datetime = None, dry_run: bool = False) -> Dict[str, Any]:
        """
        Move PENDING requests past their expiry to EXPIRED.

        Responses already treat such requests as expired, so skipping a run
        changes nothing but the stored status.

        Args:
            now: Reference time (defaults to utcnow)
            dry_run: If True, count but don't update

        Returns:
            Summary with the number of requests expired
        """
        now = now or datetime.utcnow()
        stale = ApprovalRequest.query.filter(
            ApprovalRequest.status == ApprovalStatus.PENDING.value,
            ApprovalRequest.expires_at <= now
        )

        if dry_run:
            return {'expired': stale.count(), 'dry_run': True, 'run_date': now.isoformat()}

        try:
            expired = stale.update(
                {ApprovalRequest.status: ApprovalStatus.EXPIRED.value},
                synchronize_session=False
            )
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Approval expiry sweep failed: {e}")
            raise

        if expired:
            current_app.logger.info(f"Expired {expired} stale approval request(s)")
        return {'expired': expired, 'dry_run': False, 'run_date': now.isoformat()}

    # ==================== LEDGER VERIFICATION ====================

    def verify_ledger(self) -> Dict[str, Any]:
        """
        Check the ledger invariants.

        Reports:
        - balance_mismatches: enrollments whose current_points differ from
          the signed sum of their transactions
        - card_mismatches: cards whose points differ from their enrollment
        - missing_cards: ACTIVE enrollments without a card
        - unapplied_approvals: APPROVED enrollment requests with no card
        """
        sums = dict(
            ((row.customer_id, row.program_id), int(row.total))
            for row in db.session.query(
                PointTransaction.customer_id,
                PointTransaction.program_id,
                func.coalesce(func.sum(PointTransaction.points), 0).label('total')
            ).group_by(PointTransaction.customer_id, PointTransaction.program_id).all()
        )
        cards = {
            (card.customer_id, card.program_id): card
            for card in LoyaltyCard.query.all()
        }

        results = {
            'checked': 0,
            'balance_mismatches': [],
            'card_mismatches': [],
            'missing_cards': [],
            'unapplied_approvals': [],
            'run_date': datetime.utcnow().isoformat()
        }

        for enrollment in ProgramEnrollment.query.order_by(ProgramEnrollment.id).all():
            results['checked'] += 1
            key = (enrollment.customer_id, enrollment.program_id)

            ledger_total = sums.get(key, 0)
            if ledger_total != enrollment.current_points:
                results['balance_mismatches'].append({
                    'customer_id': enrollment.customer_id,
                    'program_id': enrollment.program_id,
                    'current_points': enrollment.current_points,
                    'ledger_total': ledger_total
                })

            card = cards.get(key)
            if card is None:
                if enrollment.status == EnrollmentStatus.ACTIVE.value:
                    results['missing_cards'].append({
                        'customer_id': enrollment.customer_id,
                        'program_id': enrollment.program_id
                    })
            elif card.points != enrollment.current_points:
                results['card_mismatches'].append({
                    'card_id': card.id,
                    'card_points': card.points,
                    'current_points': enrollment.current_points
                })

        approved = ApprovalRequest.query.filter_by(
            request_type=ApprovalRequestType.ENROLLMENT.value,
            status=ApprovalStatus.APPROVED.value
        ).all()
        program_ids = {row.id for row in db.session.query(LoyaltyProgram.id).all()}
        for request in approved:
            program_id = int(request.entity_id)
            # Deleted programs take their cards with them
            if program_id in program_ids and (request.customer_id, program_id) not in cards:
                results['unapplied_approvals'].append({
                    'request_id': request.id,
                    'customer_id': request.customer_id,
                    'program_id': program_id
                })

        results['ok'] = not any(
            results[key] for key in
            ('balance_mismatches', 'card_mismatches', 'missing_cards', 'unapplied_approvals')
        )
        return results


# Singleton instance
maintenance_service = MaintenanceService()
