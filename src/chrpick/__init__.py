"""Ticket branch cherry-picker.

Features:
- Start a new production branch for a ticket off the mainline
- List production commits that the homologation branch is missing
- Filter the list to your own commits
- Cherry-pick the listed commits, oldest first, after confirmation
- Configurable branch prefix and suffixes
"""

__version__ = "0.3.0"
