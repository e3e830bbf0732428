"""
Shared fixtures for Loyalty Hub tests.

Every test runs inside one app context on an in-memory SQLite database, so
service calls and test client requests share the same session.
"""
import pytest

from loyaltyhub import create_app
from loyaltyhub.extensions import db
from loyaltyhub.models import User, UserType, LoyaltyProgram, Reward


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def business(app):
    """Create a business user."""
    user = User(name='Bean There Cafe', email='owner@beanthere.test', user_type=UserType.BUSINESS.value)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def other_business(app):
    user = User(name='Rival Roasters', email='owner@rival.test', user_type=UserType.BUSINESS.value)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def customer(app):
    """Create a customer user."""
    user = User(name='Ana Customer', email='ana@example.com', user_type=UserType.CUSTOMER.value)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def program(app, business):
    """Program that requires customer approval, with a small reward catalog."""
    program = LoyaltyProgram(
        business_id=business.id,
        name='Coffee Club',
        description='Earn a point per coffee',
        requires_approval=True
    )
    db.session.add(program)
    db.session.flush()
    db.session.add_all([
        Reward(program_id=program.id, name='Free sticker', points_required=0),
        Reward(program_id=program.id, name='Free coffee', points_required=200),
        Reward(program_id=program.id, name='Mug', points_required=1500),
    ])
    db.session.commit()
    return program


@pytest.fixture
def open_program(app, business):
    """Program customers join without approval."""
    program = LoyaltyProgram(
        business_id=business.id,
        name='Open Rewards',
        requires_approval=False
    )
    db.session.add(program)
    db.session.commit()
    return program


def reward_named(program, name):
    return Reward.query.filter_by(program_id=program.id, name=name).one()


@pytest.fixture
def enrolled(app, customer, program):
    """Customer with an ACTIVE enrollment (and card) in ``program``."""
    from loyaltyhub.services.enrollment_service import EnrollmentService

    result = EnrollmentService().request_enrollment(customer.id, program.id, requires_approval=False)
    assert result['success'], result
    return result


def auth(user):
    """Request headers identifying ``user``."""
    return {'X-User-ID': str(user.id)}
