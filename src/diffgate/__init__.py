"""diffgate - human approval gate for agent-proposed file edits."""

__version__ = "0.1.0"
