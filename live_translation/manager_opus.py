"""
Opus-MT Translation Manager

This module runs inside the worker process. It downloads one English→target
Opus-MT model from the Hugging Face Hub file by file (so the parent can show
per-file progress), then builds a transformers translation pipeline on it.
"""

import logging

import torch
from huggingface_hub import hf_hub_download, list_repo_files
from transformers import pipeline

from .config import MAX_TRANSLATION_LENGTH, NUM_BEAMS

logger = logging.getLogger(__name__)

# Files the pipeline actually needs; everything else in the repo is skipped
MODEL_FILE_SUFFIXES = ('.json', '.spm', '.txt', '.model', '.safetensors', '.bin')
SKIPPED_WEIGHT_FILES = ('tf_model.h5', 'flax_model.msgpack', 'rust_model.ot')


class OpusTranslationManager:
    """
    Opus-MT translation manager (one model, one target language).
    """

    def __init__(self, model_name, device='cpu', max_length=MAX_TRANSLATION_LENGTH, num_beams=NUM_BEAMS):
        """
        Args:
            model_name: Hub id (e.g. 'Helsinki-NLP/opus-mt-en-es') or local path
            device: 'cuda' or 'cpu'
            max_length: Generation length limit per translation
            num_beams: Beam search width
        """
        self.model_name = model_name
        self.device = 0 if device == 'cuda' and torch.cuda.is_available() else -1
        self.max_length = max_length
        self.num_beams = num_beams
        self.translator = None

    @property
    def is_loaded(self):
        return self.translator is not None

    def _is_local_path(self):
        return self.model_name.startswith('/') or self.model_name.startswith('./')

    def _files_to_download(self):
        files = [
            name for name in list_repo_files(self.model_name)
            if name.endswith(MODEL_FILE_SUFFIXES) and name not in SKIPPED_WEIGHT_FILES
        ]
        # Prefer safetensors when the repo ships both weight formats
        if any(name.endswith('.safetensors') for name in files):
            files = [name for name in files if not name.endswith('.bin')]
        return files

    def load(self, progress_callback=None):
        """
        Download the model files and build the pipeline.

        progress_callback(file_name, percent) is called with 0 for every file
        before the first download starts, then with 100 as each one finishes.
        """
        report = progress_callback or (lambda file_name, percent: None)

        if self._is_local_path():
            report('model', 0)
            self.translator = pipeline('translation', model=self.model_name, device=self.device)
            report('model', 100)
            return

        files = self._files_to_download()
        logger.info("Downloading %d files for %s", len(files), self.model_name)
        for file_name in files:
            report(file_name, 0)
        for file_name in files:
            hf_hub_download(repo_id=self.model_name, filename=file_name)
            report(file_name, 100)

        logger.info("Loading translation pipeline: %s", self.model_name)
        self.translator = pipeline('translation', model=self.model_name, device=self.device)
        logger.info("Translation model loaded: %s", self.model_name)

    def translate(self, text):
        """
        Translate English text to the model's target language.

        Returns:
            The raw pipeline output: a list of {'translation_text': ...}
        """
        if self.translator is None:
            raise RuntimeError('Model not ready')

        if not text or not text.strip():
            return [{'translation_text': ''}]

        return self.translator(text, max_length=self.max_length, num_beams=self.num_beams)
