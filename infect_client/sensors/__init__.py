"""QR decoding input and scan debounce."""
from .debounce import DebounceState, ScanAction, ScanDebouncer

__all__ = ["DebounceState", "ScanAction", "ScanDebouncer"]
