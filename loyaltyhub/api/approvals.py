"""
Approvals API - customer approval requests.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user
from ..models.user import UserType
from ..services.approval_service import ApprovalService
from ..utils.errors import service_response

approvals_bp = Blueprint('approvals', __name__)


@approvals_bp.route('/pending', methods=['GET'])
@require_user(UserType.CUSTOMER)
def pending_approvals():
    """Actionable requests of the calling customer, newest first."""
    return service_response(ApprovalService().list_pending_approvals(g.user_id))


@approvals_bp.route('', methods=['POST'])
@require_user(UserType.BUSINESS)
def create_approval():
    """
    Ask a customer to approve something.

    Request body:
    - customer_id: Customer (required)
    - request_type: ENROLLMENT or POINTS_DEDUCTION (required)
    - program_id: Program the request is about (required)
    - points: Points to deduct (POINTS_DEDUCTION)
    - reason / message: Optional text shown to the customer
    """
    data = request.get_json(silent=True) or {}
    payload = {k: data[k] for k in ('points', 'reason', 'message') if k in data}
    result = ApprovalService().create_approval_request(
        data.get('customer_id'),
        g.user_id,
        data.get('request_type'),
        data.get('program_id', data.get('entity_id')),
        payload=payload
    )
    return service_response(result, 201)


@approvals_bp.route('/<request_id>/respond', methods=['POST'])
@require_user(UserType.CUSTOMER)
def respond(request_id):
    """
    Approve or reject a request.

    Request body:
    - approved: true or false (required)
    """
    data = request.get_json(silent=True) or {}
    result = ApprovalService().respond_to_approval(request_id, data.get('approved'), customer_id=g.user_id)
    return service_response(result)
