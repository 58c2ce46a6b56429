"""
Request and response schemas
"""
