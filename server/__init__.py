"""APS relay service.

This package provides a FastAPI service that lets browser clients mint APS
tokens, upload files for translation and poll translation manifests.
"""

__version__ = "0.1.0"
