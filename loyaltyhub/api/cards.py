"""
Cards API - loyalty cards and their activity feed.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user
from ..models.user import UserType
from ..services.card_service import CardService
from ..utils.errors import service_response

cards_bp = Blueprint('cards', __name__)


@cards_bp.route('', methods=['GET'])
@require_user(UserType.CUSTOMER)
def list_cards():
    """Cards of the calling customer. ?include_inactive=true to list all."""
    include_inactive = request.args.get('include_inactive') == 'true'
    return service_response(CardService().list_cards(g.user_id, include_inactive=include_inactive))


@cards_bp.route('/<int:card_id>', methods=['GET'])
@require_user()
def get_card(card_id):
    return service_response(CardService().get_card(card_id, g.user_id))


@cards_bp.route('/<int:card_id>/activities', methods=['GET'])
@require_user()
def card_activities(card_id):
    limit = request.args.get('limit', 50, type=int)
    return service_response(CardService().get_card_activities(card_id, g.user_id, limit=limit))
