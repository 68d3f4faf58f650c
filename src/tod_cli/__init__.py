"""tod: a Todoist command line client for working through task lists."""

__version__ = "0.1.0"
