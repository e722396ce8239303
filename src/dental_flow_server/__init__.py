"""dental_flow_server - FastAPI REST API over the dental_flow engine.

Exposes flow lifecycle, step, child, edit-mode, review and submission
operations under ``/api/v1``, keyed by the caller's session identity.
"""
