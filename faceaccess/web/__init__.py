# faceaccess/web/__init__.py
"""
Web module - Flask server and management API.
"""
from .server import run_server, app, create_app, setup_management
from .management import management_bp, init_management

__all__ = [
    'run_server',
    'app',
    'create_app',
    'setup_management',
    'management_bp',
    'init_management',
]
