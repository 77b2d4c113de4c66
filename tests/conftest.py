"""
Pytest configuration and fixtures for testing the listings API.
"""

import fnmatch
import os
import sys
import pytest
from faker import Faker

# Add the parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app, db
from app.models import (
    User, Listing, Booking, BookingStatus, PaymentMethod, Review, ReviewStatus,
    MainCategory, SubCategory, SpecificItem, Notification,
)
from app.services.translation import TranslationGateway
from app.utils.auth import create_token

fake = Faker()


class FakePipeline:
    """Buffers commands and applies them on execute(), like a redis pipeline."""

    def __init__(self, client):
        self.client = client
        self.commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        if self.client.fail:
            raise ConnectionError('redis is down')
        results = [getattr(self.client, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


class FakeRedis:
    """In-memory stand-in for the subset of redis commands the cache uses."""

    def __init__(self):
        self.data = {}
        self.sets = {}
        self.ttls = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError('redis is down')

    def ping(self):
        self._check()
        return True

    def get(self, key):
        self._check()
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def keys(self, pattern):
        self._check()
        return [k for k in list(self.data) + list(self.sets) if fnmatch.fnmatchcase(k, pattern)]

    def sadd(self, key, *members):
        self._check()
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    def smembers(self, key):
        self._check()
        return set(self.sets.get(key, set()))

    def expire(self, key, ttl):
        self._check()
        self.ttls[key] = ttl
        return True

    def pipeline(self):
        return FakePipeline(self)


class FakeProvider:
    """Deterministic translator: prefixes the target language code."""

    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    def translate_text(self, text, source_lang, target_lang):
        self.calls.append((text, source_lang, target_lang))
        if self.fail_with is not None:
            raise self.fail_with
        return f"[{target_lang}] {text}"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    os.environ['FLASK_ENV'] = 'testing'
    os.environ['JWT_SECRET_KEY'] = 'test-secret-key-for-testing'

    app = create_app('testing')
    app.config['JWT_SECRET_KEY'] = 'test-secret-key-for-testing'
    app.config['ADMIN_EMAIL'] = 'admin@example.com'

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client for each test function."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create a fresh database session for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture
def fake_redis(app):
    """Attach an in-memory redis to the app's cache client for one test."""
    client = FakeRedis()
    cache = app.extensions['cache_client']
    cache.use_client(client)
    yield client
    cache.use_client(None)


@pytest.fixture
def provider(app):
    """Enable translation with a fake provider for one test."""
    fake_provider = FakeProvider()
    gateway = TranslationGateway(
        ['test-key'], rotation_backoff=0, provider_factory=lambda credential: fake_provider
    )
    previous = app.extensions['translation_gateway']
    app.extensions['translation_gateway'] = gateway
    yield fake_provider
    app.extensions['translation_gateway'] = previous


@pytest.fixture
def fanout(app):
    return app.extensions['fanout']


# Factories

@pytest.fixture
def make_user(db_session):
    def _make_user(password='testpassword123', **overrides):
        data = {
            'email': fake.unique.email(),
            'fname': fake.first_name(),
            'lname': fake.last_name(),
        }
        data.update(overrides)
        user = User(**data)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_listing(db_session):
    def _make_listing(**overrides):
        data = {
            'name': fake.sentence(nb_words=3).rstrip('.'),
            'description': fake.paragraph(),
            'price': 150.0,
            'agegroup': ['5-10 years'],
            'location': ['Riyadh'],
            'facilities': ['Parking'],
            'operating_hours': ['9am - 5pm'],
            'gender': 'Mixed',
        }
        data.update(overrides)
        listing = Listing(**data)
        db.session.add(listing)
        db.session.commit()
        return listing
    return _make_listing


@pytest.fixture
def make_booking(db_session):
    def _make_booking(user, listing, **overrides):
        data = {
            'booking_hours': '10:00 - 12:00',
            'additional_note': fake.sentence(),
            'age_group': '5-10 years',
            'number_of_persons': 2,
            'status': BookingStatus.PENDING,
            'payment_method': PaymentMethod.UNPAID,
        }
        data.update(overrides)
        booking = Booking(user_id=user.id, listing_id=listing.id, **data)
        db.session.add(booking)
        db.session.commit()
        return booking
    return _make_booking


@pytest.fixture
def make_review(db_session):
    def _make_review(booking, **overrides):
        data = {
            'rating': 4,
            'comment': fake.sentence(),
            'status': ReviewStatus.ACCEPTED,
        }
        data.update(overrides)
        review = Review(user_id=booking.user_id, listing_id=booking.listing_id, booking_id=booking.id, **data)
        db.session.add(review)
        db.session.commit()
        return review
    return _make_review


@pytest.fixture
def make_category(db_session):
    def _make_category(name='Sports', subs=None):
        main = MainCategory(name=name)
        db.session.add(main)
        db.session.flush()
        for sub_name, items in (subs or {'Football': ['Indoor pitch']}).items():
            sub = SubCategory(name=sub_name)
            main.sub_categories.append(sub)
            db.session.flush()
            for item_name in items:
                sub.specific_items.append(SpecificItem(name=item_name, main_category_id=main.id))
        db.session.commit()
        return main
    return _make_category


@pytest.fixture
def make_notification(db_session):
    def _make_notification(user, **overrides):
        data = {'title': 'Hello', 'message': fake.sentence(), 'type': 'GENERAL'}
        data.update(overrides)
        notification = Notification(user_id=user.id, **data)
        db.session.add(notification)
        db.session.commit()
        return notification
    return _make_notification


@pytest.fixture
def test_user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(app, test_user):
    """Get authentication headers for test user."""
    return {'Authorization': f'Bearer {create_token(test_user)}'}


@pytest.fixture
def paid_booking(make_listing, make_booking, test_user):
    """A confirmed, paid booking owned by test_user."""
    listing = make_listing()
    return make_booking(test_user, listing, status=BookingStatus.CONFIRMED, payment_method=PaymentMethod.PAID)

