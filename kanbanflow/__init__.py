"""kanbanflow: Kanban boards with task dependencies and workflow stages."""

__version__ = "0.1.0"
