"""Tests for per-entity translation of serialized records."""

import copy

import pytest

from app.services.translation import TranslationGateway
from app.services.translators import TRANSLATORS, translate_entity, to_source_language
from conftest import FakeProvider


@pytest.fixture
def gateway():
    provider = FakeProvider()
    return TranslationGateway(['k'], provider_factory=lambda c: provider)


def _booking_record():
    return {
        'id': 1,
        'status': 'CONFIRMED',
        'payment_method': 'PAID',
        'additional_note': 'Window seat',
        'age_group': None,
        'booking_hours': '10:00 - 12:00',
        'user': {'id': 3, 'uid': 'u-3', 'fname': 'Sara', 'lname': 'Ali'},
        'listing': {
            'id': 9,
            'name': 'Swim Club',
            'description': None,
            'agegroup': ['5-10 years', '25+ years'],
            'location': ['Riyadh'],
            'facilities': [],
            'operating_hours': ['9am - 5pm'],
            'price': 150.0,
            'selected_main_categories': [{'id': 1, 'name': 'Sports'}],
        },
        'review': None,
    }


def test_text_and_list_fields_are_translated(gateway):
    result = translate_entity('booking', _booking_record(), 'ar', gateway=gateway)

    assert result['additional_note'] == '[ar] Window seat'
    assert result['status'] == '[ar] CONFIRMED'
    assert result['listing']['name'] == '[ar] Swim Club'
    assert result['listing']['agegroup'] == ['[ar] 5-10 years', '[ar] 25+ years']
    assert result['listing']['selected_main_categories'][0]['name'] == '[ar] Sports'


def test_user_names_are_never_translated(gateway):
    record = _booking_record()
    result = translate_entity('booking', record, 'ar', gateway=gateway)
    assert result['user'] == record['user']

    review = {'id': 2, 'comment': 'Great', 'status': 'ACCEPTED', 'user': {'fname': 'Omar', 'lname': 'Said'}}
    assert translate_entity('review', review, 'ar', gateway=gateway)['user'] == {'fname': 'Omar', 'lname': 'Said'}


def test_input_is_not_mutated(gateway):
    record = _booking_record()
    snapshot = copy.deepcopy(record)
    translate_entity('booking', record, 'ar', gateway=gateway)
    assert record == snapshot


def test_nulls_and_non_text_fields_are_kept(gateway):
    result = translate_entity('booking', _booking_record(), 'ar', gateway=gateway)

    assert result['age_group'] is None
    assert result['review'] is None
    assert result['listing']['description'] is None
    assert result['listing']['facilities'] == []
    assert result['listing']['price'] == 150.0
    assert result['id'] == 1


def test_category_tree_translates_every_level(gateway):
    tree = {
        'id': 1,
        'name': 'Sports',
        'sub_categories': [
            {'id': 2, 'name': 'Football', 'specific_items': [{'id': 3, 'name': 'Indoor pitch'}]},
        ],
    }
    result = translate_entity('category_tree', tree, 'ar', gateway=gateway)

    assert result['name'] == '[ar] Sports'
    assert result['sub_categories'][0]['name'] == '[ar] Football'
    assert result['sub_categories'][0]['specific_items'][0]['name'] == '[ar] Indoor pitch'


def test_notification_and_user_translators(gateway):
    notification = {'title': 'Hi', 'message': 'Booked', 'type': 'BOOKING', 'entity_type': 'booking',
                    'user': {'fname': 'Sara'}}
    result = translate_entity('notification', notification, 'ar', gateway=gateway)
    assert result['type'] == '[ar] BOOKING'
    assert result['user'] == {'fname': 'Sara'}

    user = {'fname': 'Sara', 'lname': 'Ali', 'highest_reward_category': 'GOLD', 'total_reward_points': 2000}
    result = translate_entity('user', user, 'ar', gateway=gateway)
    assert result['fname'] == 'Sara'
    assert result['highest_reward_category'] == '[ar] GOLD'


def test_none_record_returns_none(gateway):
    assert TRANSLATORS['listing'].translate(None, 'ar', gateway=gateway) is None


def test_inbound_arabic_is_brought_to_english(gateway):
    payload = {'comment': 'رائع'}
    assert to_source_language('review', payload, 'ar', gateway=gateway) == {'comment': '[en] رائع'}


def test_inbound_english_is_untouched(gateway):
    payload = {'comment': 'Great'}
    result = to_source_language('review', payload, 'en', gateway=gateway)
    assert result == payload
    assert result is not payload
