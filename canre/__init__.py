"""
CAN bus reverse-engineering toolkit.

Infers signal layouts from captured CAN traffic: frame statistics, signal
candidate detection, correlation and semantic clustering. Boundary I/O
(capture reading, DBC export, reports) lives in ``canre_io``.
"""

__version__ = '0.1.0'
