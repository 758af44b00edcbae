from __future__ import annotations


class CrawlError(Exception):
    """Base error for everything the crawler raises on purpose."""

    def __init__(self, message: str, code: str = "CRAWL_ERROR") -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        text = f"{type(self).__name__}[{self.code}]: {self.message}"
        if self.__cause__ is not None:
            text += f"\nCaused by: {self.__cause__}"
        return text


class FetchError(CrawlError):
    def __init__(self, message: str, url: str) -> None:
        super().__init__(message, "FETCH_ERROR")
        self.url = url


class ConfigError(CrawlError):
    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message, "CONFIG_ERROR")
        self.key = key


class DependencyError(CrawlError):
    def __init__(self, message: str, dependency: str) -> None:
        super().__init__(message, "DEPENDENCY_ERROR")
        self.dependency = dependency


class FetchTimeoutError(CrawlError):
    def __init__(self, message: str, timeout_s: float) -> None:
        super().__init__(message, "TIMEOUT_ERROR")
        self.timeout_s = timeout_s
