"""Custom exception classes for the Scholar scraper"""


class ScholarScraperError(Exception):
    """Base exception for scraper errors"""

    pass


class RetrievalExhaustedError(ScholarScraperError):
    """Raised when the retry budget is spent on every endpoint bucket"""

    def __init__(self, message: str = "Cannot fetch from Google Scholar."):
        super().__init__(message)


class AbuseDetectedError(ScholarScraperError):
    """Raised when the server answers with its DOS-prevention page

    This is a hard block of the current network path. It is never retried:
    slow down or change the proxy before trying again.
    """

    def __init__(self, message: str = "DOS attack was detected"):
        super().__init__(message)


class CaptchaRequiredError(ScholarScraperError):
    """Raised when an interactive CAPTCHA challenge is served"""

    def __init__(self, message: str = "CAPTCHA detected - manual intervention required"):
        super().__init__(message)


class ConfigurationError(ScholarScraperError, ValueError):
    """Raised synchronously for invalid settings (retries, proxy parameters)"""

    pass


class NoMoreSessionsError(ScholarScraperError):
    """Raised by a provider that cannot rotate to another session"""

    pass


class ParsingError(ScholarScraperError, ValueError):
    """Raised for invalid parser or search arguments"""

    pass
