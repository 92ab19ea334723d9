# -*- coding: utf-8 -*-
"""
Internationalization (i18n) module for TimeGrid.

Provides tr() for the strings the sync notifier and the calendar menus show.
Supports English and German; 'auto' follows the system locale.
"""

import logging
from typing import Callable, List
from PySide6.QtCore import QLocale

from timegrid.i18n.translations import TRANSLATIONS

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ["en", "de"]

_current_language = "en"

_language_changed_callbacks: List[Callable[[str], None]] = []


def detect_system_language() -> str:
    """'de' when the system locale is German, 'en' otherwise"""
    name = QLocale.system().name()
    return 'de' if name.startswith('de') else 'en'


def get_language() -> str:
    return _current_language


def set_language(lang: str) -> None:
    """
    Set the current language and notify registered callbacks.

    Args:
        lang: 'en', 'de' or 'auto'; anything else falls back to English
    """
    global _current_language
    if lang == 'auto':
        lang = detect_system_language()
    if lang not in SUPPORTED_LANGUAGES:
        lang = 'en'
    _current_language = lang

    QLocale.setDefault(QLocale(QLocale.German if lang == 'de' else QLocale.English))

    for callback in list(_language_changed_callbacks):
        try:
            callback(lang)
        except Exception:
            logger.exception("Language change callback failed")


def tr(key: str, **kwargs) -> str:
    """
    Translated string for a key.

    Args:
        key: Translation key (e.g. 'sync.all_synced')
        **kwargs: Format arguments

    Returns:
        The translation, the English text when missing, or the key itself.
    """
    text = TRANSLATIONS.get(_current_language, {}).get(key) or TRANSLATIONS['en'].get(key, key)
    if kwargs:
        try:
            text = text.format(**kwargs)
        except (KeyError, ValueError):
            logger.warning("Could not format translation %r with %r", key, kwargs)
    return text


def plural(count: int, singular_key: str, plural_key: str) -> str:
    return tr(singular_key if count == 1 else plural_key)


def on_language_changed(callback: Callable[[str], None]) -> None:
    if callback not in _language_changed_callbacks:
        _language_changed_callbacks.append(callback)


def remove_language_callback(callback: Callable[[str], None]) -> None:
    if callback in _language_changed_callbacks:
        _language_changed_callbacks.remove(callback)


def get_available_languages() -> List[tuple]:
    """(code, display name) pairs for a language picker"""
    return [
        ('en', 'English'),
        ('de', 'Deutsch'),
    ]
