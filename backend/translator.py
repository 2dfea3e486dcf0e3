# Header translation for non-question columns.
from __future__ import annotations

import gettext
import os
from typing import Callable, Optional

from dotenv import load_dotenv

load_dotenv()
EXPORT_LOCALE_DIR = os.getenv("EXPORT_LOCALE_DIR", os.path.join(os.path.dirname(__file__), "locale"))
TRANSLATION_DOMAIN = "survey_export"

# response/token column -> translation key
HEADER_TRANSLATION_KEYS = {
    "id": "id",
    "lastname": "Last Name",
    "firstname": "First Name",
    "email": "Email Address",
    "token": "Token",
    "datestamp": "Date Last Action",
    "startdate": "Date Started",
    "submitdate": "Completed",
    "ipaddr": "IP-Address",
    "refurl": "Referring URL",
    "lastpage": "Last page seen",
    "startlanguage": "Start language",
}


def load_catalog(language_code: str) -> gettext.NullTranslations:
    """Catalog for a language; unknown languages fall back to the English keys."""
    return gettext.translation(
        TRANSLATION_DOMAIN, localedir=EXPORT_LOCALE_DIR, languages=[language_code], fallback=True
    )


class Translator:
    """Translates dictionary keys, caching one catalog per language code.

    A Translator belongs to a single export; catalogs are not shared across
    exports.
    """

    def __init__(self, catalog_factory: Callable[[str], gettext.NullTranslations] = load_catalog):
        self._catalog_factory = catalog_factory
        self._catalogs: dict[str, gettext.NullTranslations] = {}

    def _catalog(self, language_code: str) -> gettext.NullTranslations:
        if language_code not in self._catalogs:
            self._catalogs[language_code] = self._catalog_factory(language_code)
        return self._catalogs[language_code]

    def translate(self, key: str, language_code: str) -> str:
        return self._catalog(language_code).gettext(key)

    def header_translation_key(self, column: str) -> Optional[str]:
        return HEADER_TRANSLATION_KEYS.get(column)

    def translate_heading(self, column: str, language_code: str) -> Optional[str]:
        """Translated heading for a meta column, or None if `column` is not one."""
        key = self.header_translation_key(column)
        if key is None:
            return None
        return self.translate(key, language_code)
