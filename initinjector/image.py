import re
from typing import Optional

from initinjector.exceptions import InvalidImageFormatError

# implements https://github.com/distribution/distribution/blob/main/reference/regexp.go
_DIGEST = r"[A-Za-z][A-Za-z0-9]*(?:[+._-][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}"
_TAG = r"[\w][\w.-]{0,127}"
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[_.]|__|[-]*)[a-z0-9]+)*"
_DOMAIN_COMPONENT = r"(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
_HOST = rf"(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[(?:[a-fA-F0-9:]+)\])"
_DOMAIN = rf"{_HOST}(?::[0-9]+)?"
_NAME = rf"(?:{_DOMAIN}/)?{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*"
REFERENCE = re.compile(
    rf"^(?P<name>{_NAME})(?::(?P<tag>{_TAG}))?(?:@(?P<digest>{_DIGEST}))?$"
)


class Image:
    """
    Parsed container image reference.

    Input:
        'registry.io/path/to/repo/image:tag'

    Output:
        name = 'image'
        repository = 'path/to/repo'
        registry = 'registry.io'
        tag = 'tag'
        digest = None

    Default registry is 'docker.io'. The tag defaults to 'latest', unless the
    reference is pinned by digest.
    """

    registry: str
    repository: Optional[str]
    name: str
    tag: Optional[str]
    digest: Optional[str]

    def __init__(self, image: str):
        match = REFERENCE.search(image)
        if (not match) or (len(match.group("name")) > 255):
            msg = "{image} is not a valid image reference."
            raise InvalidImageFormatError(message=msg, image=image)

        name, tag, digest = match.groups()
        components = name.split("/")
        self.name = components[-1]
        self.digest = digest
        self.tag = tag or ("latest" if not digest else None)

        registry_repo = components[:-1]
        if registry_repo and (
            re.search(r"[.:]", registry_repo[0]) or registry_repo[0] == "localhost"
        ):
            self.registry = registry_repo.pop(0)
        else:
            self.registry = "docker.io"
        self.repository = "/".join(registry_repo) or (
            "library" if self.registry == "docker.io" else None
        )

    @property
    def is_latest(self) -> bool:
        return self.tag == "latest"

    def __str__(self):
        repo_reg = "/".join(item for item in [self.registry, self.repository] if item)
        tag = f":{self.tag}" if self.tag else ""
        digest = f"@{self.digest}" if self.digest else ""
        return f"{repo_reg}/{self.name}{tag}{digest}"

    def __eq__(self, other):
        return str(self) == str(other)
