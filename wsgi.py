"""
WSGI entry point for hosts without ASGI support.
Only the HTTP routes work through the adapter; run uvicorn for the live channel.
"""
from a2wsgi import ASGIMiddleware
from campus_messaging.main import app

application = ASGIMiddleware(app)
