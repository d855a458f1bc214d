"""
OCR Engine Module.

Document recognition for the bill extraction pipeline:
    - TesseractBackend: image bytes -> text via Tesseract
    - RecognitionScheduler: bounded FIFO worker pool over backends
"""

from .scheduler import RecognitionScheduler, RecognitionJob, RecognitionWorker, RecognitionBackend
from .tesseract_backend import TesseractBackend

__all__ = [
    'RecognitionScheduler',
    'RecognitionJob',
    'RecognitionWorker',
    'RecognitionBackend',
    'TesseractBackend',
]
