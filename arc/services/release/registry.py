from __future__ import annotations

from typing import Protocol
from urllib.parse import quote

from arc.core.result import Err, Ok, Result
from arc.core.structured import as_obj_list
from arc.platform.http import HttpClient
from arc.release.errors import ReleaseError
from arc.release.version import Version

__all__ = ["RegistryProvider", "QuayRegistry", "image_tag"]


def image_tag(version: Version) -> str:
    """Container image tag published for ``version``, e.g. ``v0.21.0-rc1``."""
    return f"v{version}"


class RegistryProvider(Protocol):
    def tag_exists(self, image: str, tag: str) -> Result[bool, ReleaseError]: ...


class QuayRegistry:
    """Tag lookups against the Quay v1 API.

    ``image`` is a full reference such as ``quay.io/s3gw/s3gw``.
    """

    def __init__(self, http: HttpClient) -> None:
        self.http = http

    def tag_exists(self, image: str, tag: str) -> Result[bool, ReleaseError]:
        host, _, repository = image.partition("/")
        if not repository:
            return Err(ReleaseError(kind="invalid_input", message=f"invalid image name: {image}"))

        url = (
            f"https://{host}/api/v1/repository/{repository}/tag/"
            f"?specificTag={quote(tag, safe='')}&onlyActiveTags=true"
        )
        result = self.http.get_json(url)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="registry_failed",
                    message=f"failed to query {image}:{tag}",
                    hint=str(result.error),
                )
            )

        tags = as_obj_list(result.value.get("tags"))
        if tags is None:
            return Err(
                ReleaseError(kind="registry_failed", message=f"unexpected response for {image}")
            )
        return Ok(len(tags) > 0)
