"""GitHub webhook to APNs push relay for the MD TalkMan mobile app."""

__version__ = "1.0.0"
