"""Pytest config to ensure the repository root is on sys.path during collection.

Running pytest from another working directory can otherwise fail with
"No module named 'canre'" import errors.
"""
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)
