"""
Points API - awards, redemptions, balances and history.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user, scoped_customer_id
from ..models.user import UserType
from ..services.points_service import PointsService
from ..utils.errors import service_response

points_bp = Blueprint('points', __name__)


@points_bp.route('/award', methods=['POST'])
@require_user(UserType.BUSINESS)
def award_points():
    """
    Award points to an enrolled customer.

    Request body:
    - customer_id: Customer (required)
    - program_id: Program owned by the caller (required)
    - points: Positive integer (required)
    - description: Optional ledger description
    - apply_multiplier: Scale by the card's tier multiplier (default: false)
    """
    data = request.get_json(silent=True) or {}
    result = PointsService().award_points(
        data.get('customer_id'),
        g.user_id,
        data.get('program_id'),
        data.get('points'),
        description=data.get('description'),
        apply_multiplier=data.get('apply_multiplier') is True
    )
    return service_response(result)


@points_bp.route('/redeem', methods=['POST'])
@require_user(UserType.CUSTOMER)
def redeem_reward():
    """
    Redeem a reward.

    Request body:
    - program_id: Program (required)
    - reward_id: Reward from the program catalog (required)
    """
    data = request.get_json(silent=True) or {}
    result = PointsService().redeem_reward(g.user_id, data.get('program_id'), data.get('reward_id'))
    return service_response(result)


@points_bp.route('/balance', methods=['GET'])
@require_user()
def balance():
    """
    Query params:
    - program_id: Program (required)
    - customer_id: Required for businesses
    """
    program_id = request.args.get('program_id', type=int)
    customer_id, error = scoped_customer_id(request.args.get('customer_id', type=int), program_id)
    if error:
        return error
    return service_response(PointsService().get_balance(customer_id, program_id))


@points_bp.route('/history', methods=['GET'])
@require_user()
def history():
    """
    Query params:
    - program_id: Program (required)
    - customer_id: Required for businesses
    - limit: Max entries (default: 50, max: 200)
    - offset: Entries to skip (default: 0)
    """
    program_id = request.args.get('program_id', type=int)
    customer_id, error = scoped_customer_id(request.args.get('customer_id', type=int), program_id)
    if error:
        return error
    result = PointsService().get_history(
        customer_id,
        program_id,
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int)
    )
    return service_response(result)
