"""
Credential models for the S3-compatible storage the results are uploaded to.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_ssl_url(url: str) -> bool:
    parsed_url = urlparse(url)
    return parsed_url.scheme == "https"


def _normalize_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    # urlparse reads "host:port" as a scheme, so only trust explicit http(s)
    if not url.lower().startswith(("http://", "https://")):
        url = "http://" + url
    return url


class StorageCredentials(BaseSettings):
    """
    Storage credentials read from environment variables or ``imgops.env``.

    When the keys are absent the default AWS credential chain (shared config,
    instance profile, ...) is used instead.
    """

    AWS_ACCESS_KEY_ID: Optional[SecretStr] = None
    AWS_SECRET_ACCESS_KEY: Optional[SecretStr] = None
    AWS_SESSION_TOKEN: Optional[SecretStr] = None
    AWS_ENDPOINT_URL: Optional[str] = None

    AWS_REGION: Optional[str] = None
    AWS_DEFAULT_REGION: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file="imgops.env",
        extra="ignore",
    )

    def get_region(self) -> str:
        return self.AWS_REGION or self.AWS_DEFAULT_REGION or "us-east-1"

    def has_static_keys(self) -> bool:
        return self.AWS_ACCESS_KEY_ID is not None and self.AWS_SECRET_ACCESS_KEY is not None

    def client_kwargs(self) -> dict:
        """Keyword arguments for ``session.client("s3", ...)``."""
        kwargs = {"region_name": self.get_region()}
        url = _normalize_url(self.AWS_ENDPOINT_URL)
        if url is not None:
            kwargs["endpoint_url"] = url
            kwargs["use_ssl"] = _is_ssl_url(url)
        if self.has_static_keys():
            kwargs["aws_access_key_id"] = self.AWS_ACCESS_KEY_ID.get_secret_value()
            kwargs["aws_secret_access_key"] = self.AWS_SECRET_ACCESS_KEY.get_secret_value()
            if self.AWS_SESSION_TOKEN is not None:
                kwargs["aws_session_token"] = self.AWS_SESSION_TOKEN.get_secret_value()
        return kwargs
