"""Issue staleness monitoring for GitHub repositories.

This package classifies the activity state of assigned GitHub issues from
their timelines and converges issue labels and comments to match:
- Timeline staleness classification (pure, no I/O)
- Label and notification action resolution (pure, no I/O)
- GitHub API client, timeline fetching, and action execution
- Sweep orchestration, Prometheus metrics, and the HTTP service
"""
