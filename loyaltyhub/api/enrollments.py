"""
Enrollments API - invite, join, state and deactivation endpoints.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user, scoped_customer_id
from ..models.user import UserType
from ..services.enrollment_service import EnrollmentService
from ..utils.errors import service_response

enrollments_bp = Blueprint('enrollments', __name__)


@enrollments_bp.route('/invite', methods=['POST'])
@require_user(UserType.BUSINESS)
def invite_customer():
    """
    Invite a customer to one of the caller's programs.

    Request body:
    - customer_id: Customer to invite (required)
    - program_id: Program (required)
    - requires_approval: Override the program setting (optional)

    Returns PENDING with a request_id, or ACTIVE with a card_id.
    """
    data = request.get_json(silent=True) or {}
    result = EnrollmentService().request_enrollment(
        data.get('customer_id'),
        data.get('program_id'),
        requires_approval=data.get('requires_approval'),
        business_id=g.user_id
    )
    return service_response(result, 201)


@enrollments_bp.route('/join', methods=['POST'])
@require_user(UserType.CUSTOMER)
def join_program():
    """
    Customer joins a program directly.

    Request body:
    - program_id: Program to join (required)
    """
    data = request.get_json(silent=True) or {}
    result = EnrollmentService().request_enrollment(
        g.user_id,
        data.get('program_id'),
        requires_approval=False
    )
    return service_response(result, 201)


@enrollments_bp.route('/state', methods=['GET'])
@require_user()
def enrollment_state():
    """
    Enrollment state of a (customer, program) pair.

    Query params:
    - program_id: Program (required)
    - customer_id: Required for businesses
    """
    program_id = request.args.get('program_id', type=int)
    customer_id, error = scoped_customer_id(request.args.get('customer_id', type=int), program_id)
    if error:
        return error
    return service_response(EnrollmentService().get_enrollment_state(customer_id, program_id))


@enrollments_bp.route('/deactivate', methods=['POST'])
@require_user()
def deactivate():
    """
    Deactivate an ACTIVE enrollment.

    Request body:
    - program_id: Program (required)
    - customer_id: Required for businesses
    """
    data = request.get_json(silent=True) or {}
    service = EnrollmentService()
    if g.user_type == UserType.BUSINESS.value:
        result = service.deactivate_enrollment(data.get('customer_id'), data.get('program_id'), business_id=g.user_id)
    else:
        result = service.deactivate_enrollment(g.user_id, data.get('program_id'))
    return service_response(result)
