"""Domain exceptions shared by the pipeline, the providers and the API."""

from __future__ import annotations


class GeneratorAlreadyRunningError(RuntimeError):
    """A generator run was requested while another one holds the run lock."""

    def __init__(self, current_log_id: int | None = None) -> None:
        self.current_log_id = current_log_id
        super().__init__("Generator is already running")


class AIProviderError(Exception):
    """The LLM call failed or returned something that is not the expected JSON."""


class AffiliateNetworkError(Exception):
    """An affiliate network answered with a non-success status or was unreachable."""

    def __init__(self, network_slug: str, message: str) -> None:
        self.network_slug = network_slug
        super().__init__(f"{network_slug}: {message}")


class AffiliateNetworkExistsError(Exception):
    """Another affiliate network already uses this name or slug."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Affiliate network '{slug}' already exists")
