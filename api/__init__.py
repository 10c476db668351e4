"""REST API for the attendance station."""
from .api_server import create_app, run_api_server
__all__ = ['create_app', 'run_api_server']
