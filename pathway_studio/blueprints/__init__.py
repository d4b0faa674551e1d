"""
Pathway Studio
Blueprint registry.
"""
