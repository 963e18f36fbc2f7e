"""Backend implementations."""

from ticket_graph.backends.confluence import ConfluenceBackend
from ticket_graph.backends.github import GitHubBackend
from ticket_graph.backends.jira import JiraBackend

__all__ = ["JiraBackend", "ConfluenceBackend", "GitHubBackend"]
