"""
Components layer.

Pure decision components with explicit input/output contracts (see `contracts.py`):
- PolicyGuard: is this action allowed in the current environment
- DecisionRouter: does this question need a live check
"""
