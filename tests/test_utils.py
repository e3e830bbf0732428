"""
Tests for shared helpers: input coercion, service result mapping and payloads.
"""
import pytest
from sqlalchemy.exc import OperationalError

from loyaltyhub.models import EnrollmentPayload, PointsPayload, payload_to_dict, payload_from_dict
from loyaltyhub.utils.errors import service_response
from loyaltyhub.utils.exceptions import (
    InvalidParametersError,
    InsufficientPointsError,
    unexpected_error_result,
)
from loyaltyhub.utils.validation import coerce_id, coerce_points


class TestCoercion:

    def test_coerce_id(self):
        assert coerce_id(7, 'program_id') == 7
        assert coerce_id(' 42 ', 'program_id') == 42

    @pytest.mark.parametrize('value', [None, '', 'abc', 0, -1, True])
    def test_coerce_id_rejects(self, value):
        with pytest.raises(InvalidParametersError) as exc:
            coerce_id(value, 'program_id')
        assert exc.value.field == 'program_id'

    def test_coerce_points(self):
        assert coerce_points('15') == 15
        assert coerce_points(0, allow_zero=True) == 0
        with pytest.raises(InvalidParametersError):
            coerce_points(0)


class TestResults:

    def test_error_result_shape(self):
        result = InsufficientPointsError(10, 200).to_result()

        assert result == {
            'success': False,
            'error': 'Insufficient points. Current: 10, Required: 200',
            'error_code': 'INSUFFICIENT_POINTS'
        }

    def test_unexpected_errors(self):
        storage = unexpected_error_result(OperationalError('SELECT', {}, Exception('gone')), 'Failed')
        other = unexpected_error_result(RuntimeError('bug'), 'Failed')

        assert storage['error_code'] == 'STORAGE_ERROR'
        assert other['error_code'] == 'OPERATION_FAILED'

    def test_service_response_status_mapping(self, app):
        with app.test_request_context():
            ok, status = service_response({'success': True, 'id': 3}, 201)
            assert status == 201
            assert ok.get_json() == {'success': True, 'id': 3}

            conflict, status = service_response(
                {'success': False, 'error': 'Request already approved', 'error_code': 'ALREADY_PROCESSED'}
            )
            assert status == 409
            assert conflict.get_json()['error'] == {
                'message': 'Request already approved', 'code': 'ALREADY_PROCESSED'
            }

            _, status = service_response({'success': False, 'error_code': 'STORAGE_ERROR'})
            assert status == 503

            partial, status = service_response(
                {'success': False, 'error': 'x', 'error_code': 'NOT_FOUND', 'request_id': 'r1'}
            )
            assert status == 404
            assert partial.get_json()['request_id'] == 'r1'


class TestPayloads:

    def test_points_payload_omits_unset_fields(self):
        data = payload_to_dict(PointsPayload(program_id=1, points=20, reason='Refund'))

        assert data == {'program_id': 1, 'points': 20, 'reason': 'Refund', 'kind': 'points'}
        assert payload_from_dict(data) == PointsPayload(program_id=1, points=20, reason='Refund')

    def test_unknown_kind_returns_dict(self):
        assert payload_from_dict({'points': 5}) == {'points': 5}
        assert payload_from_dict(None) is None
        assert isinstance(payload_from_dict({'kind': 'enrollment', 'program_id': 2}), EnrollmentPayload)
