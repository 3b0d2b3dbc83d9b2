"""
OCR provider seam.

Receipts normally arrive with their text already recognised on the device.
When they don't, the receipt service asks the configured provider to
extract text from the stored image URL.

Configuration:
- OCR_PROVIDER: provider name ('none' ships by default)
"""
import logging

from flask import current_app

from ..utils.exceptions import ConfigurationError, ExternalServiceError

logger = logging.getLogger(__name__)


class OCRProvider:
    """Base class for text extraction backends."""

    name = 'base'

    def extract_text(self, image_url: str) -> str:
        raise NotImplementedError


class NullOCRProvider(OCRProvider):
    """Used when no OCR backend is configured."""

    name = 'none'

    def extract_text(self, image_url: str) -> str:
        logger.warning(f'OCR requested for {image_url} but no provider is configured')
        raise ExternalServiceError('OCR provider not configured')


_PROVIDERS = {
    NullOCRProvider.name: NullOCRProvider,
}


def register_ocr_provider(provider_cls) -> None:
    _PROVIDERS[provider_cls.name] = provider_cls


def get_ocr_provider() -> OCRProvider:
    name = (current_app.config.get('OCR_PROVIDER') or 'none').lower()
    provider_cls = _PROVIDERS.get(name)
    if provider_cls is None:
        raise ConfigurationError(f'Unknown OCR provider: {name}')
    return provider_cls()
