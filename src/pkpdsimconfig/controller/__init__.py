"""
The CONTROLLER layer owns the root Analysis, loads and saves it, and keeps
the UI in sync through the projected JSON document.
"""
