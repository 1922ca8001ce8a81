"""
Boundary collaborators: capture reading, DBC export, reports and metrics.
"""
