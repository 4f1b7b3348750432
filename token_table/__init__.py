"""
Token Table - live-updating table of tradable tokens by category.

Architecture:
- datafeed/: Token store and initial data sources (mock generator, JSON/HTTP)
- engine/: Change tracking, mutation feed, view projection, timers
- ui/: Token table with tabs, filter, sorting and change flashes (Textual TUI)
"""

__version__ = "0.1.0"
