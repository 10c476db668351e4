"""QR scanning module for the attendance station."""
from .token_extractor import QRTokenExtractor, TokenDetection, draw_token_outline
from .decode_loop import DecodeLoop, ScannerState
__all__ = ['QRTokenExtractor', 'TokenDetection', 'draw_token_outline', 'DecodeLoop', 'ScannerState']
