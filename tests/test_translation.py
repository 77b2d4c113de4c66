"""Tests for the translation gateway: memo, passthrough and credential rotation."""

import pytest

from app.services.translation import (
    DeepLProvider, TranslationError, TranslationGateway, is_rate_limit_error,
)
from conftest import FakeProvider


class RateLimitedProvider:
    """Fails with the given error for the first credentials, then succeeds."""

    def __init__(self, credential, failing, error):
        self.credential = credential
        self.failing = failing
        self.error = error
        self.calls = 0

    def translate_text(self, text, source_lang, target_lang):
        self.calls += 1
        if self.credential in self.failing:
            raise self.error
        return f"{self.credential}:{text}"


def _rotating_gateway(credentials, failing, error):
    providers = {}

    def factory(credential):
        providers[credential] = RateLimitedProvider(credential, failing, error)
        return providers[credential]

    gateway = TranslationGateway(credentials, rotation_backoff=0, provider_factory=factory)
    return gateway, providers


class TestPassthrough:

    def test_same_language_returns_input(self):
        provider = FakeProvider()
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)
        assert gateway.translate('Hello', 'en', 'en') == 'Hello'
        assert provider.calls == []

    @pytest.mark.parametrize('value', ['', '   ', None, 42, ['a']])
    def test_empty_or_non_string_input_is_returned_unchanged(self, value):
        provider = FakeProvider()
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)
        assert gateway.translate(value, 'ar') == value
        assert provider.calls == []

    def test_disabled_gateway_passes_through(self):
        gateway = TranslationGateway([])
        assert not gateway.enabled
        assert gateway.translate('Swimming pool', 'ar') == 'Swimming pool'


class TestMemo:

    def test_second_call_is_served_from_memo(self):
        provider = FakeProvider()
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)

        first = gateway.translate('Parking', 'ar')
        second = gateway.translate('Parking', 'ar')

        assert first == second == '[ar] Parking'
        assert len(provider.calls) == 1
        assert gateway.memo_size == 1

    def test_memo_is_keyed_by_direction(self):
        provider = FakeProvider()
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)

        gateway.translate('Parking', 'ar', 'en')
        gateway.translate('Parking', 'en', 'ar')

        assert len(provider.calls) == 2

    def test_failures_are_not_memoized(self):
        provider = FakeProvider(fail_with=TranslationError('DeepL error 500: boom', 500))
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)

        assert gateway.translate('Parking', 'ar') == 'Parking'
        assert gateway.translate('Parking', 'ar') == 'Parking'
        assert len(provider.calls) == 2
        assert gateway.memo_size == 0

    def test_translate_many_preserves_order_and_length(self):
        provider = FakeProvider()
        gateway = TranslationGateway(['k'], provider_factory=lambda c: provider)

        result = gateway.translate_many(['Pool', '', 'Gym'], 'ar')

        assert result == ['[ar] Pool', '', '[ar] Gym']


class TestRotation:

    def test_rate_limit_rotates_to_next_credential(self):
        error = TranslationError('DeepL error 429: Too many requests', 429)
        gateway, providers = _rotating_gateway(['a', 'b'], {'a'}, error)

        assert gateway.translate('Hello', 'ar') == 'b:Hello'
        assert gateway.active_credential_index == 1
        assert providers['a'].calls == 1

        # The rotated credential stays active for later calls
        gateway.translate('World', 'ar')
        assert providers['a'].calls == 1
        assert providers['b'].calls == 2

    def test_quota_message_counts_as_rate_limit(self):
        error = TranslationError('Quota exceeded for this key')
        gateway, _ = _rotating_gateway(['a', 'b'], {'a'}, error)
        assert gateway.translate('Hello', 'ar') == 'b:Hello'

    def test_rotation_wraps_round_robin(self):
        error = TranslationError('DeepL error 456: Quota exceeded', 456)
        gateway, _ = _rotating_gateway(['a', 'b', 'c'], {'c'}, error)
        gateway._active_index = 2

        assert gateway.translate('Hello', 'ar') == 'a:Hello'
        assert gateway.active_credential_index == 0

    def test_all_credentials_exhausted_returns_source(self):
        error = TranslationError('DeepL error 429: Too many requests', 429)
        gateway, providers = _rotating_gateway(['a', 'b'], {'a', 'b'}, error)

        assert gateway.translate('Hello', 'ar') == 'Hello'
        # At most one attempt per credential
        assert providers['a'].calls + providers['b'].calls == 2

    def test_other_errors_do_not_rotate(self):
        error = TranslationError('DeepL error 400: Bad request', 400)
        gateway, providers = _rotating_gateway(['a', 'b'], {'a'}, error)

        assert gateway.translate('Hello', 'ar') == 'Hello'
        assert gateway.active_credential_index == 0
        assert 'b' not in providers


class TestHelpers:

    @pytest.mark.parametrize('error, expected', [
        (TranslationError('x', 429), True),
        (TranslationError('x', 456), True),
        (TranslationError('Too Many Requests'), True),
        (TranslationError('quota reached'), True),
        (TranslationError('x', 500), False),
        (ValueError('nope'), False),
    ])
    def test_is_rate_limit_error(self, error, expected):
        assert is_rate_limit_error(error) is expected

    def test_free_keys_use_free_endpoint(self):
        assert 'api-free' in DeepLProvider('abc:fx').api_url
        assert 'api-free' not in DeepLProvider('abc').api_url

    def test_english_target_is_regional(self):
        assert DeepLProvider._target_code('en') == 'EN-US'
        assert DeepLProvider._target_code('ar') == 'AR'
