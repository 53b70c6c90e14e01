"""Analytics engine for project-tracking snapshots."""

from pm_analytics.engine import compute, report_to_dict

__all__ = ["compute", "report_to_dict"]
