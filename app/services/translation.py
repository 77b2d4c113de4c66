"""Translation gateway in front of the DeepL API.

One gateway is built per app in ``create_app()`` and kept on
``app.extensions``. It owns the credential rotation pointer, the in-process
memo and the concurrency cap, so tests can swap in a gateway with a fake
provider without touching module state.
"""
import logging
import threading
import time

import requests
from flask import current_app

logger = logging.getLogger(__name__)

DEEPL_FREE_URL = 'https://api-free.deepl.com/v2/translate'
DEEPL_PRO_URL = 'https://api.deepl.com/v2/translate'

# DeepL answers 429 for throttling and 456 for an exhausted character quota
RATE_LIMIT_STATUS_CODES = (429, 456)
RATE_LIMIT_MARKERS = ('too many requests', 'quota')


class TranslationError(Exception):
    """Raised by providers when a translation request fails."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def is_rate_limit_error(error: Exception) -> bool:
    """True when the error means 'try another credential'."""
    if getattr(error, 'status_code', None) in RATE_LIMIT_STATUS_CODES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class DeepLProvider:
    """Minimal DeepL v2 client bound to a single auth key."""

    def __init__(self, auth_key: str, api_url: str = None, timeout: float = 10):
        self.auth_key = auth_key
        if api_url:
            self.api_url = api_url
        elif auth_key.endswith(':fx'):
            self.api_url = DEEPL_FREE_URL
        else:
            self.api_url = DEEPL_PRO_URL
        self.timeout = timeout

    @staticmethod
    def _target_code(lang: str) -> str:
        # Plain EN is deprecated as a DeepL target
        code = lang.upper()
        return 'EN-US' if code == 'EN' else code

    def translate_text(self, text: str, source_lang: str, target_lang: str) -> str:
        headers = {'Authorization': f'DeepL-Auth-Key {self.auth_key}'}
        data = {
            'text': [text],
            'target_lang': self._target_code(target_lang),
        }
        if source_lang and source_lang != 'auto':
            data['source_lang'] = source_lang.upper()

        try:
            response = requests.post(self.api_url, headers=headers, data=data, timeout=self.timeout)
        except requests.Timeout:
            raise TranslationError('DeepL timeout')
        except requests.RequestException as e:
            raise TranslationError(f'DeepL request failed: {e}')

        if response.status_code != 200:
            try:
                message = response.json().get('message', response.reason)
            except ValueError:
                message = response.reason
            raise TranslationError(f'DeepL error {response.status_code}: {message}', response.status_code)

        result = response.json()
        translations = result.get('translations') or []
        if not translations:
            raise TranslationError('DeepL unexpected response format')
        return translations[0]['text']


class TranslationGateway:
    """Memoized, rate-limited, multi-credential translation entry point."""

    def __init__(self, credentials, api_url=None, max_concurrency=5, rotation_backoff=0.5,
                 timeout=10, provider_factory=None):
        self.credentials = list(credentials or [])
        self.api_url = api_url
        self.rotation_backoff = rotation_backoff
        self.timeout = timeout
        self._provider_factory = provider_factory or self._deepl_provider
        self._providers = {}
        self._active_index = 0
        self._rotation_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max(1, int(max_concurrency)))
        self._memo = {}

    def init_app(self, app):
        app.extensions['translation_gateway'] = self
        if not self.enabled:
            logger.warning("No DeepL credentials configured - translation disabled, serving source text")
        return self

    def _deepl_provider(self, credential):
        return DeepLProvider(credential, api_url=self.api_url, timeout=self.timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.credentials)

    @property
    def active_credential_index(self) -> int:
        return self._active_index

    @property
    def memo_size(self) -> int:
        return len(self._memo)

    def _provider(self, index):
        provider = self._providers.get(index)
        if provider is None:
            provider = self._provider_factory(self.credentials[index])
            self._providers[index] = provider
        return provider

    def _rotate(self, failed_index):
        with self._rotation_lock:
            # Another caller may already have moved past this credential
            if self._active_index == failed_index:
                self._active_index = (failed_index + 1) % len(self.credentials)
            return self._active_index

    def _translate_with_rotation(self, text, source_lang, target_lang):
        attempts = len(self.credentials)
        last_error = None
        for attempt in range(attempts):
            index = self._active_index
            try:
                with self._slots:
                    return self._provider(index).translate_text(text, source_lang, target_lang)
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise
                last_error = e
                next_index = self._rotate(index)
                logger.warning(
                    f"Translation credential #{index + 1} rate limited ({e}); "
                    f"switching to credential #{next_index + 1}"
                )
                if attempt < attempts - 1 and self.rotation_backoff:
                    time.sleep(self.rotation_backoff)
        raise TranslationError(f"All {attempts} translation credentials exhausted: {last_error}")

    def translate(self, text, target_lang: str, source_lang: str = 'en'):
        """
        Translate ``text`` into ``target_lang``.

        Never raises: empty or non-string input, same-language requests and a
        disabled gateway pass the text through, and any provider failure
        returns the source text after logging. Successful results are
        memoized for the life of the process.
        """
        if not isinstance(text, str) or not text.strip():
            return text
        target = (target_lang or '').lower()
        source = (source_lang or 'auto').lower()
        if not target or target == source or not self.enabled:
            return text

        memo_key = (text, source, target)
        cached = self._memo.get(memo_key)
        if cached is not None:
            return cached

        try:
            translated = self._translate_with_rotation(text, source, target)
        except Exception as e:
            logger.error(f"Translation {source}->{target} failed, using source text: {e}")
            return text

        self._memo[memo_key] = translated
        return translated

    def translate_many(self, texts, target_lang: str, source_lang: str = 'en') -> list:
        """Translate each element, preserving order and length."""
        return [self.translate(text, target_lang, source_lang) for text in texts]


def get_gateway() -> TranslationGateway:
    """Gateway bound to the current app."""
    return current_app.extensions['translation_gateway']
