"""Copies files shared in Slack into S3 and replies with their public links."""
