import gettext
from translator import HEADER_TRANSLATION_KEYS, Translator, load_catalog

class _Catalog(gettext.NullTranslations):
    def __init__(self, language_code):
        super().__init__()
        self.language_code = language_code
    def gettext(self, message):
        return f"{self.language_code}:{message}"

def test_catalog_loaded_once_per_language():
    created = []
    def factory(code):
        created.append(code)
        return _Catalog(code)
    t = Translator(factory)
    assert t.translate("Token", "de") == "de:Token"
    assert t.translate("Completed", "de") == "de:Completed"
    assert t.translate("Token", "fr") == "fr:Token"
    assert created == ["de", "fr"]

def test_translators_do_not_share_catalogs():
    created = []
    def factory(code):
        created.append(code)
        return _Catalog(code)
    Translator(factory).translate("id", "en")
    Translator(factory).translate("id", "en")
    assert created == ["en", "en"]

def test_translate_heading_meta_and_question_columns():
    t = Translator(_Catalog)
    assert t.translate_heading("submitdate", "nl") == "nl:Completed"
    assert t.translate_heading("email", "nl") == "nl:Email Address"
    assert t.translate_heading("12X3X45", "nl") is None
    assert t.header_translation_key("attribute_1") is None

def test_default_catalog_falls_back_to_keys():
    t = Translator()
    assert t.translate_heading("lastpage", "xx") == "Last page seen"
    assert isinstance(load_catalog("en"), gettext.NullTranslations)
    assert set(HEADER_TRANSLATION_KEYS) >= {"id", "token", "submitdate", "startlanguage", "ipaddr", "refurl"}
