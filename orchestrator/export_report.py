"""
Export report generator.

Builds a summary of one export run from its ExportStats and formats it for
console display or JSON export.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from models import ExportStats


class ExportReport:
    """Generates export run reports."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('fedora_export.report')

    def generate_report(
        self,
        stats: ExportStats,
        target_dir: Union[str, Path],
        index_file: Union[str, Path],
        resolver: str
    ) -> Dict[str, Any]:
        """
        Generate the export report.

        Args:
            stats: Statistics collected during the run
            target_dir: Root of the output tree
            index_file: Path of the export index
            resolver: Name of the datastream resolver used

        Returns:
            Report dictionary
        """
        summary = stats.to_dict()
        summary['duration_formatted'] = self._format_duration(stats.duration_seconds)
        summary['status'] = 'failed' if stats.error else 'success'

        report = {
            'summary': summary,
            'target_dir': str(target_dir),
            'index_file': str(index_file),
            'resolver': resolver,
            'timestamp': datetime.now().isoformat()
        }

        self.logger.info(
            f"Report generated: {stats.objects_exported} objects, status {summary['status']}"
        )
        return report

    def _format_duration(self, seconds: float) -> str:
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
        summary = report.get('summary', {})
        size_mb = summary.get('bytes_written', 0) / 1024 / 1024

        sections = [
            "=" * 60,
            "EXPORT REPORT",
            "=" * 60,
            "",
            "Summary:",
            f"  Status:      {summary.get('status', 'unknown').upper()}",
            f"  UMDM:        {summary.get('umdm_count', 0)}",
            f"  UMAM:        {summary.get('umam_count', 0)}",
            f"  Datastreams: {summary.get('datastreams_written', 0)} written, "
            f"{summary.get('datastreams_referenced', 0)} referenced",
            f"  Written:     {size_mb:.2f} MB",
            f"  Resolver:    {report.get('resolver', 'unknown')}",
            f"  Duration:    {summary.get('duration_formatted', '0s')}",
            "",
            "Output:",
            f"  Directory:   {report.get('target_dir', '')}",
            f"  Index:       {report.get('index_file', '')}",
            ""
        ]

        if summary.get('error'):
            sections.append("Failure:")
            sections.append("-" * 60)
            if summary.get('failed_pid'):
                sections.append(f"  Object:      {summary['failed_pid']}")
            sections.append(f"  Error:       {summary['error']}")
            sections.append("")

        sections.append("=" * 60)
        return "\n".join(sections)

    def export_json_report(self, report: Dict[str, Any], filepath: Union[str, Path]) -> None:
        """
        Export report to JSON file.

        Args:
            report: Export report dictionary
            filepath: Output file path
        """
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2, ensure_ascii=False, default=str)

            self.logger.info(f"JSON report exported to {filepath}")

        except OSError as e:
            self.logger.error(f"Failed to export JSON report: {str(e)}")


__all__ = ['ExportReport']
