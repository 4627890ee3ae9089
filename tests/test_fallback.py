from live_translation.fallback import fallback_translate


def test_phrase_match_is_case_insensitive():
    assert fallback_translate('Hello', 'es') == 'hola'
    assert fallback_translate('  THANK YOU ', 'fr') == 'merci'


def test_word_substitution():
    assert fallback_translate('I love you', 'es') == 'Yo amor tú'
    assert fallback_translate('you', 'de') == 'Du'


def test_substitution_only_replaces_whole_words():
    # "your" and "island" contain vocabulary words but must not be touched
    assert fallback_translate('your island', 'es') == '[Spanish] your island'


def test_tag_fallback_for_unknown_text():
    assert fallback_translate('good night', 'es') == '[Spanish] good night'


def test_phrase_without_entry_for_language_uses_tag():
    assert fallback_translate('hello', 'nl') == '[Dutch] hello'


def test_unsupported_language_uses_upper_case_code():
    assert fallback_translate('hi', 'xx') == '[XX] hi'
