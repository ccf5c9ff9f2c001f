"""
HTTP API for design sessions.
"""
