"""
Pytest fixtures for salonpos backend tests.

Provides test database setup, a pinned clock, record factories, and test client.
"""

from datetime import datetime

import pytest
from salonpos import create_app
from salonpos.extensions import db
from salonpos.time_utils import CLOCK_EXTENSION_KEY, FixedClock
from salonpos.services import promotions_service, transaction_service


BRANCH = "branch-1"
OTHER_BRANCH = "branch-2"

# Mid-morning on a business day, well inside every test promotion window
NOW = datetime(2024, 3, 1, 10, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'DEPOSIT_INCLUDE_UNPAID': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def clock(app):
    """Pin the engine's clock to NOW; tests move it with set()/advance()."""
    fixed = FixedClock(NOW)
    app.extensions[CLOCK_EXTENSION_KEY] = fixed
    yield fixed
    app.extensions[CLOCK_EXTENSION_KEY] = None


# =============================================================================
# FACTORIES
# =============================================================================

def service_line(service_id="svc-cut", base_price=850, adjustment=0, **extra):
    line = {
        "serviceId": service_id,
        "serviceName": extra.pop("name", "Haircut"),
        "basePrice": base_price,
        "priceAdjustment": adjustment,
        "stylistId": "stylist-1",
        "stylistName": "Bea",
    }
    line.update(extra)
    return line


def product_line(product_id="prd-shampoo", price=250, quantity=1):
    return {"productId": product_id, "productName": "Shampoo", "price": price, "quantity": quantity}


@pytest.fixture
def make_transaction(db_session, clock):
    def _make(services=None, products=None, client_name="Ana Reyes", client_id="client-1", branch_id=BRANCH, **kwargs):
        if services is None and products is None:
            services = [service_line()]
        return transaction_service.create_transaction(
            branch_id,
            services=services,
            products=products,
            client_info={"name": client_name, "phone": "0917", "email": "ana@example.com"} if client_name else None,
            client_id=client_id,
            created_by="receptionist-1",
            **kwargs,
        )
    return _make


@pytest.fixture
def make_promotion(db_session, clock):
    def _make(code="SUMMER10", branch_id=BRANCH, **overrides):
        data = {
            "promotionCode": code,
            "title": overrides.pop("title", f"Promo {code}"),
            "discountType": "percentage",
            "discountValue": 10,
            "applicableTo": "all",
            "usageType": "repeating",
            "startDate": "2024-01-01",
            "endDate": "2024-12-31",
        }
        data.update(overrides)
        return promotions_service.create_promotion(branch_id, data, created_by="manager-1")
    return _make


def actor_headers(actor_id, role):
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


@pytest.fixture
def receptionist_headers():
    return actor_headers("receptionist-1", "receptionist")


@pytest.fixture
def manager_headers():
    return actor_headers("manager-1", "branchManager")


@pytest.fixture
def stylist_headers():
    return actor_headers("stylist-1", "stylist")
