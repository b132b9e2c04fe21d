"""Intent recognizers."""
from recognizer.base import Recognizer
from recognizer.factory import create_recognizer
from recognizer.keyword import KeywordRecognizer

__all__ = ["Recognizer", "KeywordRecognizer", "create_recognizer"]
