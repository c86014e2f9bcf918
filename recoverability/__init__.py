"""Veeam Recoverability Posture Assessment.

Normalizes recovery validation results from Nutanix AHV, Azure, AWS and
VMware sources, scores the organization's recoverability posture, derives
advisory findings and tracks the score over time.
"""

__version__ = "0.1.0"
__author__ = "Backup Engineering Team"
