from dataclasses import dataclass, field
import re
from typing import Optional
from urllib.parse import urlsplit

from ref_versions import Version

DEFAULT_BRANCH = 'master'
UPLOAD_PACK_SUFFIX = '/git-upload-pack'

PACKAGE_NAME_REGEX = r'[-a-zA-Z0-9]+'
VERSION_TOKEN_REGEX = r'v[0-9]+(?:\.[0-9]+){0,2}(?:-unstable)?'
PACKAGE_REGEX = rf'{PACKAGE_NAME_REGEX}(?:\.{VERSION_TOKEN_REGEX})?'
PACKAGE_PATTERN = re.compile(rf'(?P<name>{PACKAGE_NAME_REGEX})(?:\.(?P<version>{VERSION_TOKEN_REGEX}))?')


def split_package(package: str) -> tuple[str, Optional[str]]:
    """Split "db.v3" into ("db", "v3"); a bare "db" has no version token."""
    match = PACKAGE_PATTERN.fullmatch(package)
    if match is None:
        raise ValueError(f"malformed package '{package}'")
    return match.group('name'), match.group('version')


def _parse_root_url(value: str) -> tuple[str, str]:
    if '://' not in value:
        value = 'https://' + value
    url = urlsplit(value)
    if not url.netloc:
        raise ValueError(f"root URL '{value}' has no host")
    if url.query or url.fragment:
        raise ValueError(f"root URL '{value}' must not carry a query or fragment")
    return url.scheme, url.netloc + url.path.rstrip('/')


@dataclass(frozen=True)
class RepoRoot:
    """A real repository root and the vanity root it is served under."""
    repo_scheme: str
    repo_host_path: str
    vanity_scheme: str
    vanity_host_path: str

    @classmethod
    def from_urls(cls, repo_url: str, vanity_url: str) -> 'RepoRoot':
        repo_scheme, repo_host_path = _parse_root_url(repo_url)
        vanity_scheme, vanity_host_path = _parse_root_url(vanity_url)
        return cls(repo_scheme, repo_host_path, vanity_scheme, vanity_host_path)

    def new_repo(self, name: str, version: Optional[str] = None) -> 'Repo':
        requested = Version.parse(version) if version else Version.wildcard()
        return Repo(self, name, version, requested)


@dataclass
class Repo:
    root: RepoRoot
    name: str
    # Version token as requested, e.g. "v1"; None when the path carried none.
    version_token: Optional[str] = None
    requested_version: Version = field(default_factory=Version.wildcard)
    # Best version among all_versions contained by requested_version.
    full_version: Version = Version.INVALID
    all_versions: list[Version] = field(default_factory=list)

    def set_versions(self, versions: list[Version], full_version: Version) -> None:
        self.all_versions = versions
        self.full_version = full_version

    @property
    def repo_root(self) -> str:
        return f'{self.root.repo_host_path}/{self.name}'

    @property
    def vanity_root(self) -> str:
        return f'{self.root.vanity_host_path}/{self.name}'

    @property
    def vanity_path(self) -> str:
        if not self.version_token:
            return self.vanity_root
        return f'{self.vanity_root}.{self.version_token}'

    @property
    def vanity_url(self) -> str:
        return f'{self.root.vanity_scheme}://{self.vanity_path}'

    @property
    def repo_root_url(self) -> str:
        return f'{self.root.repo_scheme}://{self.repo_root}'

    @property
    def upload_pack_url(self) -> str:
        return f'https://{self.repo_root}{UPLOAD_PACK_SUFFIX}'

    @property
    def git_tree(self) -> str:
        if not self.full_version.is_valid():
            return DEFAULT_BRANCH
        return str(self.full_version)
