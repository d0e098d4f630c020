# faceaccess/verification/__init__.py
"""
Verification module - access decisions and enrollment.
"""
from .orchestrator import VerificationService

__all__ = ['VerificationService']
