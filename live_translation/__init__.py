# Live caption translation: model lifecycle and request orchestration
from .config import TranslatorSettings
from .errors import (
    InvalidOutputShape,
    LoadSuperseded,
    ModelLoadFailure,
    ModelNotReady,
    TranslationError,
    TranslationFailure,
    TranslationTimeout,
    UnsupportedLanguage,
    WorkerCrash,
    WorkerCreationFailure,
    WorkerTerminated,
)
from .facade import LiveTranslator
from .fallback import fallback_translate
from .language_codes import (
    MODEL_CATALOG,
    get_model_display_name,
    is_translation_supported,
    normalize_language_code,
)
from .progress import ProgressState

__all__ = [
    'LiveTranslator',
    'TranslatorSettings',
    'ProgressState',
    'MODEL_CATALOG',
    'fallback_translate',
    'get_model_display_name',
    'is_translation_supported',
    'normalize_language_code',
    'TranslationError',
    'UnsupportedLanguage',
    'WorkerCreationFailure',
    'ModelLoadFailure',
    'LoadSuperseded',
    'ModelNotReady',
    'TranslationTimeout',
    'TranslationFailure',
    'InvalidOutputShape',
    'WorkerCrash',
    'WorkerTerminated',
]
