"""
Export report generator for aggregating statistics and formatting reports.

This module turns the statistics collected by each export phase into a report
dictionary, formats it for the console and writes it out as JSON.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


class ExportReport:
    """Generates export reports aggregating statistics from the walk and rewrite phases."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize export report generator.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger('vault_exporter.orchestrator.export_report')

    def generate_report(self, stats: Dict[str, Any], duration: float) -> Dict[str, Any]:
        """
        Generate export report.

        Args:
            stats: Phase statistics ('walk', 'notes', 'attachments', 'resolver',
                'rewrite'), plus 'renames', 'unresolved' and 'output_directory'
            duration: Total export duration in seconds

        Returns:
            Export report dictionary
        """
        report = {
            'summary': self._build_summary(stats, duration),
            'phases': self._build_phase_breakdown(stats),
            'renames': dict(stats.get('renames', {})),
            'unresolved': self._build_unresolved(stats.get('unresolved', [])),
            'output_directory': stats.get('output_directory'),
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {report['summary']['notes_exported']} note(s), "
            f"{report['summary']['attachments_exported']} attachment(s), "
            f"{report['summary']['unresolved']} unresolved link(s)"
        )
        return report

    def _build_summary(self, stats: Dict[str, Any], duration: float) -> Dict[str, Any]:
        """Build high-level summary section."""
        walk = stats.get('walk', {})
        notes = stats.get('notes', {})
        attachments = stats.get('attachments', {})
        rewrite = stats.get('rewrite', {})

        return {
            'seeds': walk.get('seeds', 0),
            'documents': walk.get('documents', 0),
            'notes_exported': notes.get('exported', 0),
            'attachments_exported': attachments.get('exported', 0),
            'deduplicated': notes.get('deduplicated', 0) + attachments.get('deduplicated', 0),
            'renamed': notes.get('renamed', 0) + attachments.get('renamed', 0),
            'prefix_collisions': notes.get('prefix_collisions', 0) + attachments.get('prefix_collisions', 0),
            'unresolved': len(stats.get('unresolved', [])),
            'links_rewritten': rewrite.get('links_rewritten', 0),
            'total_size_bytes': notes.get('total_size_bytes', 0) + attachments.get('total_size_bytes', 0),
            'duration': duration,
            'duration_formatted': self._format_duration(duration)
        }

    @staticmethod
    def _build_phase_breakdown(stats: Dict[str, Any]) -> Dict[str, Any]:
        """Build per-phase statistics section."""
        return {
            'walk': {
                **stats.get('walk', {}),
                'resolver': stats.get('resolver', {}),
                'notes': stats.get('notes', {}),
                'attachments': stats.get('attachments', {})
            },
            'rewrite': stats.get('rewrite', {})
        }

    @staticmethod
    def _build_unresolved(unresolved) -> List[Dict[str, str]]:
        return [{'document': document, 'target': target} for document, target in unresolved]

    @staticmethod
    def _format_duration(seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        else:
            hours = int(seconds // 3600)
            minutes = int((seconds % 3600) // 60)
            secs = int(seconds % 60)
            return f"{hours}h {minutes}m {secs}s"

    def format_console_report(self, report: Dict[str, Any]) -> str:
        """
        Format report for console display.

        Args:
            report: Export report dictionary

        Returns:
            Formatted console string
        """
        sections = []

        sections.append("=" * 60)
        sections.append("EXPORT REPORT")
        sections.append("=" * 60)
        sections.append("")

        summary = report.get('summary', {})
        sections.append("Summary:")
        sections.append(f"  Output:          {report.get('output_directory')}")
        sections.append(f"  Seeds:           {summary.get('seeds', 0)}")
        sections.append(f"  Notes:           {summary.get('notes_exported', 0)}")
        sections.append(f"  Attachments:     {summary.get('attachments_exported', 0)}")
        sections.append(f"  Deduplicated:    {summary.get('deduplicated', 0)}")
        sections.append(f"  Renamed:         {summary.get('renamed', 0)}")
        sections.append(f"  Links rewritten: {summary.get('links_rewritten', 0)}")
        sections.append(f"  Duration:        {summary.get('duration_formatted', '0s')}")

        if summary.get('prefix_collisions', 0) > 0:
            sections.append(f"  Hash clashes:    {summary['prefix_collisions']}")

        renames = report.get('renames', {})
        if renames:
            sections.append("")
            sections.append("Renamed on collision:")
            for old_name, new_name in sorted(renames.items()):
                sections.append(f"  {old_name} -> {new_name}")

        unresolved = report.get('unresolved', [])
        if unresolved:
            sections.append("")
            sections.append(f"Unresolved links ({len(unresolved)}):")
            for item in unresolved[:20]:
                sections.append(f"  {item['document']}: {item['target']}")
            if len(unresolved) > 20:
                sections.append(f"  ... and {len(unresolved) - 20} more")

        sections.append("")
        sections.append("=" * 60)

        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: str) -> None:
        """
        Export report to JSON file.

        Args:
            report: Export report dictionary
            filepath: Output file path
        """
        try:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")


__all__ = ['ExportReport']
