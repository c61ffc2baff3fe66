# src/core/result_reporter.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.document_store import lookup_field
from src.core.fallback_executor import MatchSet
from src.core.query_planner import DEFAULT_TIMESTAMP_FIELD

DEFAULT_PREVIEW_SIZE = 5
PREVIEW_FIELDS = ('name', 'subject', 'source', 'routingMethod')
MAX_VALUE_LENGTH = 100

logger = logging.getLogger(__name__)


@dataclass
class MatchReport:
    """Count plus a short preview of what a query matched"""
    collection: str
    count: int
    preview: List[Dict[str, Any]] = field(default_factory=list)
    degraded: bool = False


def _render(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
        return value[:MAX_VALUE_LENGTH] + '...'
    if isinstance(value, (dict, list)):
        return str(value)[:MAX_VALUE_LENGTH]
    return value


def _summarize_document(doc_id: Optional[str],
                        data: Dict[str, Any],
                        fields: List[str],
                        timestamp_field: str) -> Dict[str, Any]:
    summary: Dict[str, Any] = {}
    if doc_id:
        summary['id'] = doc_id

    timestamp = lookup_field(data, timestamp_field)
    if timestamp is not None:
        summary[timestamp_field] = _render(timestamp)

    for name in fields:
        value = lookup_field(data, name)
        if value is not None and value != '':
            summary[name] = _render(value)
    return summary


def summarize_matches(match_set: MatchSet,
                      preview_size: int = DEFAULT_PREVIEW_SIZE,
                      filter_field: Optional[str] = None,
                      timestamp_field: str = DEFAULT_TIMESTAMP_FIELD) -> MatchReport:
    """
    Build a MatchReport for a MatchSet

    Args:
        match_set: Query results
        preview_size: Number of leading matches to summarize
        filter_field: Field the extra condition filtered on, shown if present
        timestamp_field: Timestamp field to render

    Returns:
        MatchReport; absent fields are left out of each preview entry
    """
    fields = list(PREVIEW_FIELDS)
    if filter_field and filter_field not in fields and filter_field != timestamp_field:
        fields.append(filter_field)

    preview = []
    for match in match_set.matches[:max(preview_size, 0)]:
        snapshot = match.snapshot
        try:
            data = snapshot.to_dict() or {}
        except Exception as e:
            logger.debug(f"Could not read document for preview: {e}")
            data = {}
        preview.append(
            _summarize_document(getattr(snapshot, 'id', None), data, fields, timestamp_field)
        )

    return MatchReport(
        collection=match_set.collection,
        count=len(match_set),
        preview=preview,
        degraded=match_set.degraded,
    )


def format_report(report: MatchReport) -> List[str]:
    """Printable lines for a report"""
    lines = [f"{report.collection}: {report.count} document(s)"]
    if report.degraded:
        lines[0] += " (filtered in memory)"
    if report.preview:
        lines.append("   Preview:")
        for index, entry in enumerate(report.preview, start=1):
            lines.append(f"   {index}. ID: {entry.get('id', '')}")
            for key, value in entry.items():
                if key != 'id':
                    lines.append(f"      {key}: {value}")
        remaining = report.count - len(report.preview)
        if remaining > 0:
            lines.append(f"   ... and {remaining} more")
    return lines
