"""
HTTP tests for the Loyalty Hub API.

Tests cover:
- Header authentication and user-type checks
- Invite -> respond -> award -> redeem over HTTP
- Error bodies and status codes
- Card, notification and program endpoints
"""
import pytest

from loyaltyhub.extensions import db
from loyaltyhub.models import ApprovalRequest
from tests.conftest import auth, reward_named


def invite(client, business, customer, program, **extra):
    body = {'customer_id': customer.id, 'program_id': program.id}
    body.update(extra)
    return client.post('/api/enrollments/invite', json=body, headers=auth(business))


class TestAuth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy', 'service': 'loyaltyhub'}

    def test_missing_header(self, client):
        response = client.get('/api/cards')

        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'AUTH_REQUIRED'

    def test_unknown_user(self, client):
        response = client.get('/api/cards', headers={'X-User-ID': '4040'})

        assert response.status_code == 401

    def test_wrong_user_type(self, client, customer, program):
        response = client.post('/api/points/award', json={}, headers=auth(customer))

        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'FORBIDDEN'

    def test_request_id_echoed(self, client):
        response = client.get('/health', headers={'X-Request-ID': 'trace-123'})

        assert response.headers['X-Request-ID'] == 'trace-123'

    def test_unknown_route(self, client):
        response = client.get('/api/nothing-here')

        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'NOT_FOUND'


class TestEnrollmentFlow:

    def test_invite_and_approve(self, client, customer, business, program):
        invited = invite(client, business, customer, program)
        assert invited.status_code == 201
        request_id = invited.get_json()['request_id']
        assert invited.get_json()['status'] == 'PENDING'

        pending = client.get('/api/approvals/pending', headers=auth(customer)).get_json()
        assert [r['id'] for r in pending['requests']] == [request_id]

        approved = client.post(
            f'/api/approvals/{request_id}/respond', json={'approved': True}, headers=auth(customer)
        )
        assert approved.status_code == 200
        card_id = approved.get_json()['card_id']

        state = client.get(
            f'/api/enrollments/state?program_id={program.id}', headers=auth(customer)
        ).get_json()
        assert state['status'] == 'ACTIVE'

        again = client.post(
            f'/api/approvals/{request_id}/respond', json={'approved': True}, headers=auth(customer)
        )
        assert again.status_code == 200
        assert again.get_json()['already_processed'] is True
        assert again.get_json()['card_id'] == card_id

        rejected = client.post(
            f'/api/approvals/{request_id}/respond', json={'approved': False}, headers=auth(customer)
        )
        assert rejected.status_code == 409
        assert rejected.get_json()['error']['code'] == 'ALREADY_PROCESSED'

    def test_duplicate_invite_conflicts(self, client, customer, business, program):
        invite(client, business, customer, program)

        response = invite(client, business, customer, program)

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'ALREADY_PENDING'

    def test_generic_enrollment_request_checks_state(self, client, customer, business, program):
        body = {'customer_id': customer.id, 'request_type': 'ENROLLMENT', 'program_id': program.id}

        first = client.post('/api/approvals', json=body, headers=auth(business))
        second = client.post('/api/approvals', json=body, headers=auth(business))

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.get_json()['error']['code'] == 'ALREADY_PENDING'

    def test_generic_enrollment_request_for_member(self, client, customer, business, program, enrolled):
        body = {'customer_id': customer.id, 'request_type': 'ENROLLMENT', 'program_id': program.id}

        response = client.post('/api/approvals', json=body, headers=auth(business))

        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'ALREADY_ENROLLED'

    def test_invite_without_approval(self, client, customer, business, program):
        response = invite(client, business, customer, program, requires_approval=False)

        assert response.status_code == 201
        assert response.get_json()['status'] == 'ACTIVE'

    def test_invite_to_foreign_program(self, client, customer, other_business, program):
        response = invite(client, other_business, customer, program)

        assert response.status_code == 403

    def test_customer_joins_directly(self, client, customer, program):
        response = client.post('/api/enrollments/join', json={'program_id': program.id}, headers=auth(customer))

        assert response.status_code == 201
        assert response.get_json()['status'] == 'ACTIVE'

    def test_expired_request_is_gone(self, client, customer, business, program):
        from datetime import datetime, timedelta
        request_id = invite(client, business, customer, program).get_json()['request_id']
        request = db.session.get(ApprovalRequest, request_id)
        request.expires_at = datetime.utcnow() - timedelta(minutes=5)
        db.session.commit()

        response = client.post(
            f'/api/approvals/{request_id}/respond', json={'approved': True}, headers=auth(customer)
        )

        assert response.status_code == 410
        assert response.get_json()['error']['code'] == 'EXPIRED'

    def test_respond_needs_boolean(self, client, customer, business, program):
        request_id = invite(client, business, customer, program).get_json()['request_id']

        response = client.post(f'/api/approvals/{request_id}/respond', json={}, headers=auth(customer))

        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_PARAMETERS'

    def test_business_reads_state_of_own_program_only(self, client, customer, business, other_business, program):
        url = f'/api/enrollments/state?program_id={program.id}&customer_id={customer.id}'

        assert client.get(url, headers=auth(business)).get_json()['status'] == 'NONE'
        assert client.get(url, headers=auth(other_business)).status_code == 403
        assert client.get(f'/api/enrollments/state?program_id={program.id}',
                          headers=auth(business)).status_code == 400

    def test_deactivate(self, client, customer, business, program, enrolled):
        response = client.post(
            '/api/enrollments/deactivate',
            json={'customer_id': customer.id, 'program_id': program.id},
            headers=auth(business)
        )

        assert response.status_code == 200
        assert response.get_json()['status'] == 'INACTIVE'

        again = client.post('/api/enrollments/deactivate', json={'program_id': program.id}, headers=auth(customer))
        assert again.status_code == 409


class TestPointsApi:

    def award(self, client, business, customer, program, points):
        return client.post(
            '/api/points/award',
            json={'customer_id': customer.id, 'program_id': program.id, 'points': points},
            headers=auth(business)
        )

    def test_award_then_overdraw(self, client, customer, business, program, enrolled):
        awarded = self.award(client, business, customer, program, 150)
        assert awarded.status_code == 200
        assert awarded.get_json()['balance'] == 150

        coffee = reward_named(program, 'Free coffee')
        redeemed = client.post(
            '/api/points/redeem',
            json={'program_id': program.id, 'reward_id': coffee.id},
            headers=auth(customer)
        )
        assert redeemed.status_code == 422
        assert redeemed.get_json()['error']['code'] == 'INSUFFICIENT_POINTS'

        balance = client.get(f'/api/points/balance?program_id={program.id}', headers=auth(customer))
        assert balance.get_json()['balance'] == 150

    def test_award_requires_enrollment(self, client, customer, business, program):
        response = self.award(client, business, customer, program, 10)

        assert response.status_code == 422
        assert response.get_json()['error']['code'] == 'NOT_ENROLLED'

    @pytest.mark.parametrize('points', [0, -3, 'ten'])
    def test_award_rejects_bad_amounts(self, client, customer, business, program, enrolled, points):
        response = self.award(client, business, customer, program, points)

        assert response.status_code == 400

    def test_redeem_and_history(self, client, customer, business, program, enrolled):
        self.award(client, business, customer, program, 500)
        coffee = reward_named(program, 'Free coffee')

        redeemed = client.post(
            '/api/points/redeem',
            json={'program_id': program.id, 'reward_id': coffee.id},
            headers=auth(customer)
        )
        assert redeemed.status_code == 200
        assert redeemed.get_json()['balance'] == 300

        history = client.get(
            f'/api/points/history?program_id={program.id}&customer_id={customer.id}',
            headers=auth(business)
        ).get_json()
        assert [t['points'] for t in history['transactions']] == [-200, 500]
        assert history['ledger_total'] == 300

    def test_points_deduction_request(self, client, customer, business, program, enrolled):
        self.award(client, business, customer, program, 100)

        created = client.post(
            '/api/approvals',
            json={
                'customer_id': customer.id,
                'request_type': 'POINTS_DEDUCTION',
                'program_id': program.id,
                'points': 60,
                'reason': 'Refunded order'
            },
            headers=auth(business)
        )
        assert created.status_code == 201
        request_id = created.get_json()['request']['id']

        response = client.post(
            f'/api/approvals/{request_id}/respond', json={'approved': True}, headers=auth(customer)
        )
        assert response.status_code == 200

        balance = client.get(
            f'/api/points/balance?program_id={program.id}&customer_id={customer.id}',
            headers=auth(business)
        ).get_json()
        assert balance['balance'] == 40


class TestCardsAndNotifications:

    def test_cards(self, client, customer, business, program, enrolled):
        cards = client.get('/api/cards', headers=auth(customer)).get_json()
        assert cards['total'] == 1
        card_id = cards['cards'][0]['id']

        assert client.get(f'/api/cards/{card_id}', headers=auth(business)).status_code == 200

        activities = client.get(f'/api/cards/{card_id}/activities', headers=auth(customer))
        assert activities.status_code == 200
        assert activities.get_json()['activities'] == []

    def test_inbox_and_read(self, client, customer, business, program):
        invite(client, business, customer, program)

        inbox = client.get('/api/notifications', headers=auth(customer)).get_json()
        assert inbox['unread_count'] == 1
        notification = inbox['notifications'][0]
        assert notification['type'] == 'ENROLLMENT_REQUEST'
        assert notification['requires_action'] is True

        read = client.post(f"/api/notifications/{notification['id']}/read", headers=auth(customer))
        assert read.status_code == 200

        unread = client.get('/api/notifications?unread_only=true', headers=auth(customer)).get_json()
        assert unread['total'] == 0

    def test_preferences(self, client, customer):
        updated = client.put('/api/notifications/preferences', json={'push': False}, headers=auth(customer))
        assert updated.status_code == 200
        assert updated.get_json()['preferences']['push'] is False

        bad = client.put('/api/notifications/preferences', json={'carrier_pigeon': True}, headers=auth(customer))
        assert bad.status_code == 400


class TestProgramsApi:

    def test_create_list_get_delete(self, client, business, customer):
        created = client.post(
            '/api/programs',
            json={'name': 'Tea Time', 'rewards': [{'name': 'Free tea', 'points_required': 50}]},
            headers=auth(business)
        )
        assert created.status_code == 201
        program_id = created.get_json()['program']['id']

        listing = client.get('/api/programs?mine=true', headers=auth(business)).get_json()
        assert listing['total'] == 1

        fetched = client.get(f'/api/programs/{program_id}', headers=auth(customer)).get_json()
        assert fetched['program']['rewards'][0]['name'] == 'Free tea'

        assert client.delete(f'/api/programs/{program_id}', headers=auth(customer)).status_code == 403
        deleted = client.delete(f'/api/programs/{program_id}', headers=auth(business))
        assert deleted.status_code == 200
        assert client.get(f'/api/programs/{program_id}', headers=auth(customer)).status_code == 404

    def test_create_requires_name(self, client, business):
        response = client.post('/api/programs', json={}, headers=auth(business))

        assert response.status_code == 400
