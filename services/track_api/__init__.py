"""Trackvault Track API service.

FastAPI service for uploading, listing, streaming and deleting audio demos.
"""

__all__: list[str] = []
