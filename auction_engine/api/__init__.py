"""
HTTP and WebSocket routes
"""
