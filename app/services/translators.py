"""Per-entity translation of serialized records.

Each entity type declares which of its fields are free text, which are lists
of free text and which keys hold nested records. Translating produces a new
dict; the input is never modified. Embedded users keep their names verbatim.
"""

from app.services.translation import get_gateway


class EntityTranslator:
    """Declarative field projection for one entity shape."""

    def __init__(self, text_fields=(), list_fields=(), relations=None):
        self.text_fields = tuple(text_fields)
        self.list_fields = tuple(list_fields)
        # field name -> name of the translator registered in TRANSLATORS
        self.relations = dict(relations or {})

    def translate(self, record, target_lang, source_lang='en', gateway=None):
        if record is None:
            return None
        gateway = gateway or get_gateway()
        result = dict(record)

        for field in self.text_fields:
            if result.get(field) is not None:
                result[field] = gateway.translate(result[field], target_lang, source_lang)

        for field in self.list_fields:
            values = result.get(field)
            if isinstance(values, list):
                result[field] = gateway.translate_many(values, target_lang, source_lang)

        for field, translator_name in self.relations.items():
            value = result.get(field)
            if value is None:
                continue
            nested = TRANSLATORS[translator_name]
            if isinstance(value, list):
                result[field] = [
                    nested.translate(item, target_lang, source_lang, gateway) for item in value
                ]
            elif isinstance(value, dict):
                result[field] = nested.translate(value, target_lang, source_lang, gateway)

        return result


TRANSLATORS = {
    # Embedded user: fname/lname and ids only, nothing translatable
    'user_summary': EntityTranslator(),
    'user': EntityTranslator(
        text_fields=('highest_reward_category',),
        relations={'rewards': 'reward'},
    ),
    'reward': EntityTranslator(text_fields=('description', 'category')),
    'category_item': EntityTranslator(text_fields=('name',)),
    'sub_category_tree': EntityTranslator(
        text_fields=('name',),
        relations={'specific_items': 'category_item'},
    ),
    'category_tree': EntityTranslator(
        text_fields=('name',),
        relations={'sub_categories': 'sub_category_tree'},
    ),
    'listing': EntityTranslator(
        text_fields=('name', 'description', 'gender', 'discount'),
        list_fields=('agegroup', 'location', 'facilities', 'operating_hours'),
        relations={
            'selected_main_categories': 'category_item',
            'selected_sub_categories': 'category_item',
            'selected_specific_items': 'category_item',
            'reviews': 'review',
            'bookings': 'booking',
        },
    ),
    'booking': EntityTranslator(
        text_fields=('additional_note', 'age_group', 'booking_hours', 'status', 'payment_method'),
        relations={
            'user': 'user_summary',
            'listing': 'listing',
            'review': 'review',
            'reward': 'reward',
        },
    ),
    'review': EntityTranslator(
        text_fields=('comment', 'status'),
        relations={
            'user': 'user_summary',
            'listing': 'listing',
            'booking': 'booking',
        },
    ),
    'notification': EntityTranslator(
        text_fields=('title', 'message', 'type', 'entity_type'),
        relations={'user': 'user_summary'},
    ),
}


def translate_entity(entity_type: str, record, target_lang: str, source_lang: str = 'en', gateway=None):
    return TRANSLATORS[entity_type].translate(record, target_lang, source_lang, gateway)


def translate_listing(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('listing', record, target_lang, source_lang, gateway)


def translate_booking(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('booking', record, target_lang, source_lang, gateway)


def translate_review(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('review', record, target_lang, source_lang, gateway)


def translate_notification(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('notification', record, target_lang, source_lang, gateway)


def translate_user(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('user', record, target_lang, source_lang, gateway)


def translate_category_tree(record, target_lang, source_lang='en', gateway=None):
    return translate_entity('category_tree', record, target_lang, source_lang, gateway)


def to_source_language(entity_type: str, payload: dict, request_lang: str, source_lang: str = 'en', gateway=None):
    """Bring inbound text written in ``request_lang`` into the stored language."""
    if not request_lang or request_lang == source_lang:
        return dict(payload)
    return TRANSLATORS[entity_type].translate(payload, source_lang, request_lang, gateway)
