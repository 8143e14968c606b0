"""
Complaint Desk - customer complaint triage dashboard client
"""
__version__ = "0.1.0"
