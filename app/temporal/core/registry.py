from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type


@dataclass
class WorkflowMetadata:
    """Metadata for workflow discovery."""
    workflow_class: Type
    name: str
    task_queue: str


class WorkflowRegistry:
    """Central registry for all workflows."""

    _workflows: Dict[str, WorkflowMetadata] = {}

    @classmethod
    def register(cls, task_queue: str):
        """Decorator to register a workflow."""
        def decorator(workflow_class):
            cls._workflows[workflow_class.__name__] = WorkflowMetadata(
                workflow_class=workflow_class,
                name=workflow_class.__name__,
                task_queue=task_queue,
            )
            return workflow_class
        return decorator

    @classmethod
    def get_all_workflows(cls) -> Dict[str, WorkflowMetadata]:
        return cls._workflows


class ActivityRegistry:
    """Central registry for all activities."""

    _activities: Dict[str, Callable] = {}

    @classmethod
    def register(cls, category: str, name: Optional[str] = None):
        """Decorator to register an activity."""
        def decorator(activity_func):
            activity_name = name or activity_func.__name__
            cls._activities[f"{category}:{activity_name}"] = activity_func
            return activity_func
        return decorator

    @classmethod
    def get_all_activities(cls) -> Dict[str, Callable]:
        return cls._activities
