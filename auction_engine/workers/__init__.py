"""
Background workers driving the engine on the host's event loop
"""
