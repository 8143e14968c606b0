"""
View projections for the dashboard and ticket detail
"""
from complaint_desk.views.projections import (
    project_list,
    project_list_row,
    project_detail,
    project_stats,
    available_actions,
    render_list,
    render_detail,
    render_stats,
)

__all__ = [
    "project_list",
    "project_list_row",
    "project_detail",
    "project_stats",
    "available_actions",
    "render_list",
    "render_detail",
    "render_stats",
]
