"""
Adapters: settings and CLI
"""
