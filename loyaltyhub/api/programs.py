"""
Programs API - loyalty program and reward catalog endpoints.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user
from ..models.user import UserType
from ..services.program_service import ProgramService
from ..utils.errors import service_response

programs_bp = Blueprint('programs', __name__)


@programs_bp.route('', methods=['POST'])
@require_user(UserType.BUSINESS)
def create_program():
    """
    Create a program owned by the calling business.

    Request body:
    - name: Program name (required)
    - description: Optional description
    - requires_approval: Invites need customer approval (default: true)
    - rewards: [{name, points_required, description?}]
    """
    data = request.get_json(silent=True) or {}
    result = ProgramService().create_program(
        g.user_id,
        data.get('name'),
        description=data.get('description'),
        requires_approval=data.get('requires_approval', True),
        rewards=data.get('rewards')
    )
    return service_response(result, 201)


@programs_bp.route('', methods=['GET'])
@require_user()
def list_programs():
    """
    List active programs.

    Query params:
    - business_id: Only programs of this business
    - mine: Businesses only, list own programs including inactive ones
    """
    service = ProgramService()
    if request.args.get('mine') == 'true' and g.user_type == UserType.BUSINESS.value:
        return service_response(service.list_programs(g.user_id, include_inactive=True))
    return service_response(service.list_programs(request.args.get('business_id')))


@programs_bp.route('/<int:program_id>', methods=['GET'])
@require_user()
def get_program(program_id):
    """Program with its reward catalog."""
    return service_response(ProgramService().get_program(program_id))


@programs_bp.route('/<int:program_id>', methods=['DELETE'])
@require_user(UserType.BUSINESS)
def delete_program(program_id):
    """Delete a program; enrolled customers are notified."""
    return service_response(ProgramService().delete_program(program_id, g.user_id))
