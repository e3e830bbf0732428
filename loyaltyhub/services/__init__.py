"""
Business logic services for the Loyalty Hub platform.
"""
from .ledger_store import LedgerStore
from .event_publisher import EventPublisher
from .notification_service import NotificationService
from .program_service import ProgramService
from .enrollment_service import EnrollmentService
from .approval_service import ApprovalService
from .points_service import PointsService
from .card_service import CardService
from .maintenance_service import MaintenanceService, maintenance_service

__all__ = [
    'LedgerStore',
    'EventPublisher',
    'NotificationService',
    'ProgramService',
    'EnrollmentService',
    'ApprovalService',
    'PointsService',
    'CardService',
    'MaintenanceService',
    'maintenance_service'
]
