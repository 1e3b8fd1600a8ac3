"""
Core replication logic.

This module is framework-agnostic - it doesn't import FastAPI or boto3.
Storage access goes through the ObjectStoreClient protocol, so the engine
can be tested against the in-memory store and pointed at any S3-compatible
backend in production.
"""
