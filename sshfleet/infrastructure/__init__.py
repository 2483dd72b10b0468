"""
Infrastructure layer: files, keys and SSH transport
"""
