"""
Core infrastructure: settings, logging, errors, environments, database
"""
