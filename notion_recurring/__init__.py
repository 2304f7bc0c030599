"""
Notion recurring tasks automation.

Moves completed recurring tasks in a Notion database to their next due
date, as a Pipedream step or from the command line.
"""

__version__ = "0.2.0"
