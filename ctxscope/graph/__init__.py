"""Project graph construction and queries."""

from .builder import ProjectGraphBuilder, analyze_project, select_hubs
from .project_graph import ProjectGraph

__all__ = ["ProjectGraph", "ProjectGraphBuilder", "analyze_project", "select_hubs"]
