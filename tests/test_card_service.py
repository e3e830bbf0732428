"""
Tests for card reads.
"""
from loyaltyhub.services.card_service import CardService
from loyaltyhub.services.enrollment_service import EnrollmentService
from loyaltyhub.services.points_service import PointsService


class TestCardService:

    def test_list_cards(self, app, customer, program, open_program, enrolled):
        EnrollmentService().request_enrollment(customer.id, open_program.id)
        EnrollmentService().deactivate_enrollment(customer.id, open_program.id)

        active = CardService().list_cards(customer.id)
        everything = CardService().list_cards(customer.id, include_inactive=True)

        assert active['total'] == 1
        assert active['cards'][0]['program_name'] == 'Coffee Club'
        assert everything['total'] == 2

    def test_get_card_for_customer_and_business(self, app, customer, business, program, enrolled):
        card_id = enrolled['card_id']

        as_customer = CardService().get_card(card_id, customer.id)
        as_business = CardService().get_card(card_id, business.id)

        assert as_customer['card']['tier'] == 'STANDARD'
        assert as_customer['card']['points_to_next_tier'] == 1000
        assert as_business['card'] == as_customer['card']

    def test_get_card_forbidden(self, app, customer, other_business, program, enrolled):
        result = CardService().get_card(enrolled['card_id'], other_business.id)

        assert result['error_code'] == 'FORBIDDEN'

    def test_get_missing_card(self, app, customer):
        assert CardService().get_card(999, customer.id)['error_code'] == 'NOT_FOUND'

    def test_activities_newest_first(self, app, customer, business, program, enrolled):
        PointsService().award_points(customer.id, business.id, program.id, 600)
        PointsService().award_points(customer.id, business.id, program.id, 500)

        result = CardService().get_card_activities(enrolled['card_id'], customer.id)

        kinds = [(a['activity_type'], a['points']) for a in result['activities']]
        assert kinds == [
            ('EARN_POINTS', 500),
            ('TIER_CHANGE', 0),
            ('EARN_POINTS', 600),
        ]
