"""
FastAPI Application

Main entry point for the Catalog Reconciliation API.
"""

from reconciler.config.logging import configure_logging
from reconciler.serving.api import create_api_app

configure_logging()

app = create_api_app()
