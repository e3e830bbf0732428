"""
Tests for program catalog management and program deletion.
"""
from loyaltyhub.extensions import db
from loyaltyhub.models import (
    CardActivity,
    CustomerNotification,
    LoyaltyCard,
    LoyaltyProgram,
    PointTransaction,
    ProgramEnrollment,
    Reward,
    NotificationType,
)
from loyaltyhub.services.points_service import PointsService
from loyaltyhub.services.program_service import ProgramService
from loyaltyhub.utils.cache import cache, program_cache_key


class TestCatalog:

    def test_create_program_with_rewards(self, app, business):
        result = ProgramService().create_program(
            business.id,
            '  Bakery Stamps ',
            description='Ten stamps, one loaf',
            requires_approval=False,
            rewards=[
                {'name': 'Free loaf', 'points_required': 100},
                {'name': 'Welcome cookie'},
            ]
        )

        assert result['success'] is True
        program = result['program']
        assert program['name'] == 'Bakery Stamps'
        assert program['requires_approval'] is False
        assert [r['name'] for r in program['rewards']] == ['Welcome cookie', 'Free loaf']
        assert program['rewards'][0]['points_required'] == 0

    def test_create_program_validation(self, app, business, customer):
        service = ProgramService()

        assert service.create_program(business.id, ' ')['error_code'] == 'INVALID_PARAMETERS'
        assert service.create_program(customer.id, 'Nope')['error_code'] == 'NOT_FOUND'
        bad_reward = service.create_program(business.id, 'Bad', rewards=[{'name': 'X', 'points_required': -1}])
        assert bad_reward['error_code'] == 'INVALID_PARAMETERS'
        assert LoyaltyProgram.query.count() == 0

    def test_list_programs(self, app, business, other_business, program, open_program):
        ProgramService().create_program(other_business.id, 'Rival Beans')

        mine = ProgramService().list_programs(business_id=business.id)
        everything = ProgramService().list_programs()

        assert mine['total'] == 2
        assert everything['total'] == 3

    def test_get_program_is_cached(self, app, program):
        service = ProgramService()

        first = service.get_program(program.id)
        assert cache.get(program_cache_key(program.id))['name'] == 'Coffee Club'

        program.name = 'Renamed'
        db.session.commit()
        second = service.get_program(program.id)

        assert second['program'] == first['program']
        assert len(second['program']['rewards']) == 3

    def test_get_missing_program(self, app):
        assert ProgramService().get_program(404)['error_code'] == 'NOT_FOUND'


class TestDeleteProgram:

    def test_delete_removes_memberships_and_keeps_ledger(self, app, customer, business, program, enrolled):
        PointsService().award_points(customer.id, business.id, program.id, 80)
        service = ProgramService()
        service.get_program(program.id)
        program_id = program.id

        result = service.delete_program(program_id, business.id)

        assert result['success'] is True
        assert result['enrollments_removed'] == 1
        assert db.session.get(LoyaltyProgram, program_id) is None
        assert ProgramEnrollment.query.count() == 0
        assert LoyaltyCard.query.count() == 0
        assert CardActivity.query.count() == 0
        assert Reward.query.filter_by(program_id=program_id).count() == 0
        assert PointTransaction.query.filter_by(program_id=program_id).count() == 1
        assert cache.get(program_cache_key(program_id)) is None

        notice = CustomerNotification.query.filter_by(
            customer_id=customer.id, type=NotificationType.PROGRAM_DELETED.value
        ).one()
        assert notice.message == "Bean There Cafe's Coffee Club program has ended"

    def test_only_owner_can_delete(self, app, other_business, program):
        result = ProgramService().delete_program(program.id, other_business.id)

        assert result['error_code'] == 'FORBIDDEN'
        assert db.session.get(LoyaltyProgram, program.id) is not None

    def test_delete_missing_program(self, app, business):
        assert ProgramService().delete_program(12345, business.id)['error_code'] == 'NOT_FOUND'
