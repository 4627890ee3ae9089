"""
Background worker process.

Runs the model load and inference outside the orchestration process and
speaks the bridge protocol over two queues. This module must stay importable
without transformers: the model manager is imported only inside the process
(worker_main), the same way the server picks its translation backend at
startup.
"""

import logging

from .errors import classify_load_error

logger = logging.getLogger(__name__)


class FileProgressTracker:
    """
    Tracks download progress per file and posts 'progress' messages.

    A file's percentage is only posted when it does not go backwards.
    """

    def __init__(self, outbox):
        self.outbox = outbox
        self.files = {}

    @property
    def total_files(self):
        return len(self.files)

    @property
    def completed_files(self):
        return sum(1 for percent in self.files.values() if percent == 100)

    def report(self, file_name, percent):
        percent = int(round(max(0, min(100, percent or 0))))
        current = self.files.get(file_name)
        if current is not None and percent < current:
            return
        self.files[file_name] = percent
        self.outbox.put({
            'status': 'progress',
            'file': file_name,
            'progress': percent,
            'totalFiles': self.total_files,
            'completedFiles': self.completed_files,
        })


def run_worker(inbox, outbox, manager_factory):
    """
    Serve bridge messages until a None sentinel arrives.

    Args:
        inbox: queue of requests from the parent
        outbox: queue of replies to the parent
        manager_factory: model_name -> object with load(progress_callback),
            translate(text) and is_loaded
    """
    manager = None
    current_model_name = None

    while True:
        message = inbox.get()
        if message is None:
            break

        action = message.get('action')

        if action == 'initialize':
            model_name = message.get('modelName')

            # Already resident: nothing to load
            if manager is not None and manager.is_loaded and current_model_name == model_name:
                outbox.put({'status': 'ready', 'modelName': model_name, 'totalFiles': 0})
                continue

            manager = None
            current_model_name = None
            outbox.put({'status': 'initiate'})

            tracker = FileProgressTracker(outbox)
            try:
                logger.info("Loading model: %s", model_name)
                candidate = manager_factory(model_name)
                candidate.load(progress_callback=tracker.report)
            except Exception as e:
                category, error_message = classify_load_error(e)
                logger.error("Model loading failed for %s: %s", model_name, e)
                outbox.put({'status': 'error', 'error': error_message, 'category': category})
                continue

            manager = candidate
            current_model_name = model_name
            logger.info("Model ready: %s", model_name)
            outbox.put({'status': 'ready', 'modelName': model_name, 'totalFiles': tracker.total_files})

        elif action == 'translate':
            translation_id = message.get('translationId')
            try:
                if manager is None:
                    raise RuntimeError('Model not ready')
                result = manager.translate(message.get('text', ''))
                outbox.put({
                    'status': 'complete',
                    'translationId': translation_id,
                    'output': result if isinstance(result, list) else [result],
                })
            except Exception as e:
                _, error_message = classify_load_error(e)
                logger.error("Translation failed: %s", e)
                outbox.put({'status': 'error', 'translationId': translation_id, 'error': error_message})

        else:
            logger.warning("Unknown worker action: %s", action)


def worker_main(inbox, outbox, device='cpu', max_length=256, num_beams=2):
    """Process entry point (spawned by ProcessWorkerChannel)."""
    logging.basicConfig(level=logging.INFO,
                        format='%(asctime)s - %(processName)s - %(levelname)s - %(message)s')

    try:
        from .manager_opus import OpusTranslationManager

        def manager_factory(model_name):
            return OpusTranslationManager(model_name, device=device,
                                          max_length=max_length, num_beams=num_beams)

        run_worker(inbox, outbox, manager_factory)
    except Exception:
        logger.exception("Worker crashed")
        outbox.put({'status': 'error', 'error': 'Worker crashed'})
