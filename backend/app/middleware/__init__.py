# Middleware package init
"""
School Directory Backend: Middleware Package
=============================================

Middleware Chain (request direction):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    1. Rate Limit first: abusive clients are rejected before any work
    2. Request ID: correlation id for every log line of the request
    3. Logging: one access log line per request with status and duration
"""
