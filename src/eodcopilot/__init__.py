"""EOD Copilot: GitLab activity digests for end-of-day updates."""

__version__ = "0.1.0"
