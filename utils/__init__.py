"""Utility modules for the attendance station."""
from .config import config, Config
from .logger import logger, StationLogger
__all__ = ['config', 'Config', 'logger', 'StationLogger']
