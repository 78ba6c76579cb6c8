"""Exceptions raised across the feed pipeline."""


class FeedError(Exception):
    """Base class for animal feed errors."""


class EventValidationError(FeedError):
    """A payload could not be decoded into a usable ImageEvent."""


class PublishError(FeedError):
    """The message channel rejected or failed to confirm a publish."""

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id
