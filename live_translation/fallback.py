"""
Fallback Translator

Deterministic, synchronous stand-in used whenever the real model is absent,
still loading, unsupported, or failing. It never raises and never blocks, so
the caption path always has some text to show immediately.

Strategy, in order:
1. Exact phrase match (case-insensitive, surrounding whitespace ignored)
2. Whole-word substitution from a small vocabulary table
3. The input unchanged, prefixed with a bracketed language tag: "[Spanish] hello"
"""

import re

from .language_codes import LANGUAGE_NAMES

PHRASE_TRANSLATIONS = {
    'hello': {
        'es': 'hola', 'fr': 'bonjour', 'de': 'hallo', 'it': 'ciao',
        'pt': 'olá', 'ru': 'привет', 'ja': 'こんにちは', 'ko': '안녕하세요',
        'zh': '你好', 'ar': 'مرحبا', 'hi': 'नमस्ते',
    },
    'thank you': {
        'es': 'gracias', 'fr': 'merci', 'de': 'danke', 'it': 'grazie',
        'pt': 'obrigado', 'ru': 'спасибо', 'ja': 'ありがとう', 'ko': '감사합니다',
        'zh': '谢谢', 'ar': 'شكرا', 'hi': 'धन्यवाद',
    },
    'good morning': {
        'es': 'buenos días', 'fr': 'bonjour', 'de': 'guten Morgen', 'it': 'buongiorno',
        'pt': 'bom dia', 'ru': 'доброе утро', 'ja': 'おはようございます', 'ko': '좋은 아침',
        'zh': '早上好', 'ar': 'صباح الخير', 'hi': 'सुप्रभात',
    },
}

# Applied in this order
WORD_TRANSLATIONS = {
    'i': {'es': 'yo', 'fr': 'je', 'de': 'ich', 'it': 'io', 'pt': 'eu'},
    'you': {'es': 'tú', 'fr': 'vous', 'de': 'du', 'it': 'tu', 'pt': 'você'},
    'love': {'es': 'amor', 'fr': 'amour', 'de': 'liebe', 'it': 'amore', 'pt': 'amor'},
}

_WORD_PATTERNS = {
    word: re.compile(r'\b' + re.escape(word) + r'\b', re.IGNORECASE)
    for word in WORD_TRANSLATIONS
}


def language_tag(language_code):
    """Bracketed tag used when nothing could be substituted."""
    name = LANGUAGE_NAMES.get(language_code) or (language_code or '').upper()
    return f"[{name}]"


def fallback_translate(text, language_code):
    """
    Translate text without a model.

    Example:
        fallback_translate("Hello", "es")      → "hola"
        fallback_translate("I love you", "es") → "Yo amor tú"
        fallback_translate("good night", "es") → "[Spanish] good night"
        fallback_translate("hi", "xx")         → "[XX] hi"
    """
    text = text or ''
    phrase = PHRASE_TRANSLATIONS.get(text.strip().lower())
    if phrase and language_code in phrase:
        return phrase[language_code]

    result = text.lower()
    substituted = False
    for word, translations in WORD_TRANSLATIONS.items():
        replacement = translations.get(language_code)
        if not replacement:
            continue
        result, count = _WORD_PATTERNS[word].subn(replacement, result)
        if count:
            substituted = True

    if not substituted:
        return f"{language_tag(language_code)} {text}"

    return result[:1].upper() + result[1:]
