from .extraction import extract_json, find_json_values
from .response import ProcessedResponse, ResponseProcessor

__all__ = ['ResponseProcessor', 'ProcessedResponse', 'extract_json', 'find_json_values']
