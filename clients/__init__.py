"""HTTP clients for GitLab, the summarizer, Slack and AWS Secrets Manager."""
