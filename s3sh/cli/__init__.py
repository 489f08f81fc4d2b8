"""
Command-line layer: client wiring, command handlers and rendering.
"""
