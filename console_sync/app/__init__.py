"""
Application package for the console data-sync layer.
"""
