"""
Card Service - read side of loyalty cards.

Cards are written by the ledger store only; this service lists them for
their owners (customer or issuing business).
"""
from typing import Dict, Any

from ..extensions import db
from ..models.loyalty_card import LoyaltyCard, CardActivity
from ..utils.exceptions import LoyaltyError, NotFoundError, ForbiddenError
from ..utils.validation import coerce_id


class CardService:

    def _get_owned_card(self, card_id, user_id) -> LoyaltyCard:
        card_id = coerce_id(card_id, 'card_id')
        user_id = coerce_id(user_id, 'user_id')
        card = db.session.get(LoyaltyCard, card_id)
        if not card:
            raise NotFoundError('Card', card_id)
        if user_id not in (card.customer_id, card.business_id):
            raise ForbiddenError('Card belongs to another customer')
        return card

    def list_cards(self, customer_id, include_inactive: bool = False) -> Dict[str, Any]:
        try:
            customer_id = coerce_id(customer_id, 'customer_id')
            query = LoyaltyCard.query.filter_by(customer_id=customer_id)
            if not include_inactive:
                query = query.filter_by(is_active=True)
            cards = query.order_by(LoyaltyCard.created_at.desc(), LoyaltyCard.id.desc()).all()
            return {'success': True, 'cards': [c.to_dict() for c in cards], 'total': len(cards)}
        except LoyaltyError as e:
            return e.to_result()

    def get_card(self, card_id, user_id) -> Dict[str, Any]:
        """Card with tier benefits and points to the next tier."""
        try:
            card = self._get_owned_card(card_id, user_id)
            return {'success': True, 'card': card.to_dict()}
        except LoyaltyError as e:
            return e.to_result()

    def get_card_activities(self, card_id, user_id, limit: int = 50) -> Dict[str, Any]:
        try:
            card = self._get_owned_card(card_id, user_id)
            activities = card.activities.order_by(
                CardActivity.created_at.desc(),
                CardActivity.id.desc()
            ).limit(max(1, min(limit, 200))).all()
            return {
                'success': True,
                'card_id': card.id,
                'activities': [a.to_dict() for a in activities]
            }
        except LoyaltyError as e:
            return e.to_result()
