"""
Language Code and Model Catalog Module

Provides centralized mappings for:
- Regional / script variants → catalog language codes (client convenience)
- Catalog language codes → Opus-MT model identifiers (English → target)
- Model identifiers → human-readable display names (for progress output)

Exactly one model serves each supported target language. Codes outside the
catalog are "unsupported" and always go through the fallback translator.

Usage:
    from live_translation.language_codes import normalize_language_code, get_catalog_entry

    # Convert a regional variant to a catalog code
    code = normalize_language_code("es-MX")  # → "es"

    # Look up the model that serves it
    entry = get_catalog_entry(code)
    entry.model_id       # → "Helsinki-NLP/opus-mt-en-es"
    entry.display_name   # → "English→Spanish Model"
"""

from dataclasses import dataclass

from .config import MODEL_ID_PREFIX
from .errors import UnsupportedLanguage


@dataclass(frozen=True)
class ModelCatalogEntry:
    """One supported target language and the model that serves it."""
    language_code: str
    model_id: str
    display_name: str


# =============================================================================
# Catalog Language Code → Human-Readable Language Name
# =============================================================================

LANGUAGE_NAMES = {
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'it': 'Italian',
    'pt': 'Portuguese',
    'ru': 'Russian',
    'zh': 'Chinese',
    'ar': 'Arabic',
    'nl': 'Dutch',
    'pl': 'Polish',
    'tr': 'Turkish',
    'ja': 'Japanese',
    'ko': 'Korean',
    'hi': 'Hindi',
    'th': 'Thai',
    'vi': 'Vietnamese',
}

# Opus-MT names a few languages differently from ISO 639-1
MODEL_LANGUAGE_SUFFIX = {
    'ja': 'jap',
}


# =============================================================================
# Regional / Script Variants → Catalog Code
# =============================================================================
# Allows clients to send browser locale strings like "pt-BR" or "zh-Hans"

LANGUAGE_ALIASES = {
    "zh-cn": "zh",
    "zh-hans": "zh",
    "zh-sg": "zh",
    "pt-br": "pt",
    "pt-pt": "pt",
    "es-es": "es",
    "es-mx": "es",
    "es-419": "es",
    "fr-fr": "fr",
    "fr-ca": "fr",
    "fr-be": "fr",
    "de-de": "de",
    "de-at": "de",
    "de-ch": "de",
    "it-it": "it",
    "ru-ru": "ru",
    "ar-sa": "ar",
    "ar-eg": "ar",
    "nl-nl": "nl",
    "nl-be": "nl",
    "pl-pl": "pl",
    "tr-tr": "tr",
    "ja-jp": "ja",
    "ko-kr": "ko",
    "hi-in": "hi",
    "th-th": "th",
    "vi-vn": "vi",
    # NLLB-style codes clients of other backends tend to send
    "spa_latn": "es",
    "fra_latn": "fr",
    "deu_latn": "de",
    "ita_latn": "it",
    "por_latn": "pt",
    "rus_cyrl": "ru",
    "zho_hans": "zh",
    "arb_arab": "ar",
    "ara_arab": "ar",
    "nld_latn": "nl",
    "pol_latn": "pl",
    "tur_latn": "tr",
    "jpn_jpan": "ja",
    "kor_hang": "ko",
    "hin_deva": "hi",
    "tha_thai": "th",
    "vie_latn": "vi",
}


def _model_display_name(language_code):
    return f"English→{LANGUAGE_NAMES[language_code]} Model"


def _build_catalog():
    catalog = {}
    for code in LANGUAGE_NAMES:
        suffix = MODEL_LANGUAGE_SUFFIX.get(code, code)
        catalog[code] = ModelCatalogEntry(
            language_code=code,
            model_id=f"{MODEL_ID_PREFIX}{suffix}",
            display_name=_model_display_name(code),
        )
    return catalog


# Loaded once, never mutated
MODEL_CATALOG = _build_catalog()


def normalize_language_code(code: str) -> str:
    """
    Normalize a language code to its catalog form.

    Case-insensitive; accepts '-' or '_' separators. Known regional and
    NLLB-style variants map to the catalog code. A bare primary subtag that
    is in the catalog (e.g. "fr-LU" → "fr") is used as well. Unknown codes
    are returned lower-cased so callers can still report them.

    Example:
        normalize_language_code("pt-BR")    → "pt"
        normalize_language_code("ES")       → "es"
        normalize_language_code("zho_Hans") → "zh"
        normalize_language_code("xx")       → "xx"
    """
    if not code:
        return code

    code_lower = code.strip().lower()
    if code_lower in MODEL_CATALOG:
        return code_lower

    if code_lower in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[code_lower]

    dashed = code_lower.replace('_', '-')
    if dashed in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[dashed]

    primary = dashed.split('-', 1)[0]
    if primary in MODEL_CATALOG:
        return primary

    return code_lower


def is_translation_supported(code: str) -> bool:
    """Pure catalog membership check (after normalization)."""
    return normalize_language_code(code) in MODEL_CATALOG


def get_catalog_entry(code: str) -> ModelCatalogEntry:
    """
    Return the catalog entry for a language.

    Raises:
        UnsupportedLanguage: the code is not in the catalog.
    """
    entry = MODEL_CATALOG.get(normalize_language_code(code))
    if entry is None:
        raise UnsupportedLanguage(code)
    return entry


def get_model_display_name(model_id: str) -> str:
    """
    Get a human-readable name for a model identifier.

    Example:
        get_model_display_name("Helsinki-NLP/opus-mt-en-jap") → "English→Japanese Model"
        get_model_display_name("my/custom-model")             → "Translation Model"
    """
    for entry in MODEL_CATALOG.values():
        if entry.model_id == model_id:
            return entry.display_name

    if model_id and 'opus-mt-en-' in model_id:
        suffix = model_id.rsplit('-', 1)[-1]
        return f"English→{suffix.upper()} Model"
    return "Translation Model"
