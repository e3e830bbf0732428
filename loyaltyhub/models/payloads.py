"""
Typed payloads for notification and approval request ``data`` columns.

Each payload is tagged with a ``kind`` so rows can be read back into the
matching class. Unset optional fields are omitted from the stored JSON.
"""
from dataclasses import dataclass, asdict, fields
from typing import Optional, Dict, Any


@dataclass
class EnrollmentPayload:
    program_id: int
    program_name: Optional[str] = None
    business_name: Optional[str] = None
    customer_id: Optional[int] = None
    card_id: Optional[int] = None
    approved: Optional[bool] = None
    message: Optional[str] = None

    kind = 'enrollment'


@dataclass
class PointsPayload:
    program_id: int
    points: int = 0
    balance: Optional[int] = None
    program_name: Optional[str] = None
    reward_id: Optional[int] = None
    reward_name: Optional[str] = None
    customer_id: Optional[int] = None
    tier: Optional[str] = None
    previous_tier: Optional[str] = None
    approved: Optional[bool] = None
    reason: Optional[str] = None

    kind = 'points'


@dataclass
class ProgramPayload:
    program_id: int
    program_name: Optional[str] = None
    business_name: Optional[str] = None

    kind = 'program'


PAYLOAD_TYPES = {cls.kind: cls for cls in (EnrollmentPayload, PointsPayload, ProgramPayload)}


def payload_to_dict(payload) -> Dict[str, Any]:
    """Serialize a payload for a JSON column."""
    if payload is None:
        return {}
    if isinstance(payload, dict):
        return dict(payload)
    data = {k: v for k, v in asdict(payload).items() if v is not None}
    data['kind'] = payload.kind
    return data


def payload_from_dict(data: Optional[Dict[str, Any]]):
    """
    Rebuild a payload from stored JSON.

    Returns the raw dict when the kind is missing or unknown.
    """
    if not data:
        return None
    cls = PAYLOAD_TYPES.get(data.get('kind'))
    if cls is None:
        return data
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})
