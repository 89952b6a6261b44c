from . import calendar, push, tasks

__all__ = ["calendar", "push", "tasks"]
