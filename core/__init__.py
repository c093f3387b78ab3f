"""
Core package exposing the HTTP surface of the Interview Prep LLM Engine.
Importing this package ensures all route modules are loaded so route
definitions attach to the shared FastAPI application.
"""

# Import order matters: ensure app state is initialized before routes.
from . import app_state  # noqa: F401

# Route modules register themselves upon import.
from . import generation_routes  # noqa: F401
from . import streaming_routes  # noqa: F401
