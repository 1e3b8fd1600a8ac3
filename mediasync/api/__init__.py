"""
HTTP layer: FastAPI routes and dependencies.

Routes translate replication reports into HTTP responses; all replication
behaviour lives in core.
"""
