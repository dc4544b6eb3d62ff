"""
Orchestration package for coordinating export pipeline phases.

This package provides the orchestration layer that sequences the export
phases: Walk → Barrier → Rewrite → Report.
"""

from .export_orchestrator import ExportOrchestrator
from .export_report import ExportReport

__all__ = [
    'ExportOrchestrator',
    'ExportReport'
]
