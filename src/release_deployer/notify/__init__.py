"""Deploy reporting collaborators."""

from .airbrake import AirbrakeNotifier

__all__ = ["AirbrakeNotifier"]
