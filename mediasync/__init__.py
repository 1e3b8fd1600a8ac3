"""
mediasync - replicate media trees from an origin bucket to regional replicas.

This package contains the complete application:
- core: Framework-agnostic replication engine
- infrastructure: Object storage and telemetry integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
