"""
langfinder - Find GitHub users by programming language.

Searches GitHub for accounts working in a given language, enriches each
match with profile details, and serves the list over HTTP or the terminal.
"""

__version__ = "0.1.0"
__app_name__ = "langfinder"
