"""
TestPilot Guard - environment policy and live-check routing for subscription test tooling
"""

__version__ = "0.1.0"
