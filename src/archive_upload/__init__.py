"""Archive upload server.

LAN file-drop service: streams multipart archive uploads to disk under
collision-free names, hashes them, and optionally guards the upload route
with a shared password, bearer tokens and per-client rate limiting.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
