"""envgate HTTP server.

FastAPI application exposing:
- Environment listing, launch, termination and logs
- Access counts per subdomain
- Idle purge requests (answered immediately, reaped in the background)
"""
