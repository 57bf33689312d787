"""Custom exceptions for Travel Tracker."""


class TravelTrackerError(Exception):
    """Base exception for all Travel Tracker errors."""


class ConfigurationError(TravelTrackerError):
    """Exception raised for configuration related errors."""


class AuthenticationError(TravelTrackerError):
    """Exception raised for authentication failures."""


class GmailAPIError(TravelTrackerError):
    """Exception raised for Gmail API related errors."""


class MailSourceError(TravelTrackerError):
    """Exception raised when the travel email listing cannot be retrieved."""


class LLMConnectionError(TravelTrackerError):
    """Exception raised when unable to reach the completion backend."""


class LLMInferenceError(TravelTrackerError):
    """Exception raised when the completion backend returns an unusable reply."""


class ExtractionError(TravelTrackerError):
    """Exception raised when a trip extraction call fails after all retries."""


class StoreError(TravelTrackerError):
    """Exception raised for trip store failures."""


class DuplicateTripError(StoreError):
    """Exception raised when an insert violates a trip uniqueness constraint."""


class ScanFailedError(TravelTrackerError):
    """Exception raised when a scan aborts before completing its page."""
