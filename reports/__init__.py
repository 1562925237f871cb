"""
Reports package for Training Compliance Toolkit

Provides progress, retraining, expiring, and KPI reports.
"""

from .compliance_reports import ComplianceReports

__all__ = ['ComplianceReports']
