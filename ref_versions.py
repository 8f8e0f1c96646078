from dataclasses import dataclass
import re
from typing import ClassVar, Optional

UNSTABLE_SUFFIX = "-unstable"

VERSION_PATTERN = re.compile(
    r"v(0|[1-9][0-9]*)(?:\.(0|[1-9][0-9]*)(?:\.(0|[1-9][0-9]*))?)?(-unstable)?"
)

ACCEPTED_FORMS = "vN, vN.N, vN.N.N (optionally followed by -unstable)"


@dataclass(frozen=True)
class Version:
    """A version constraint or identifier such as v1, v1.2 or v1.2.3-unstable.

    Unset minor/patch fields are None. The INVALID sentinel has major -1
    and sorts below every real version.
    """
    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None
    unstable: bool = False

    INVALID: ClassVar["Version"]

    def __post_init__(self) -> None:
        if self.minor is None and self.patch is not None:
            raise ValueError(f"patch set without minor in {self!r}")

    @classmethod
    def parse(cls, token: str) -> "Version":
        match = VERSION_PATTERN.fullmatch(token)
        if match is None:
            raise ValueError(f"invalid version '{token}'")
        major, minor, patch, unstable = match.groups()
        return cls(
            int(major),
            None if minor is None else int(minor),
            None if patch is None else int(patch),
            unstable is not None,
        )

    @classmethod
    def try_parse(cls, token: str) -> tuple["Version", bool]:
        try:
            return cls.parse(token), True
        except ValueError:
            return cls.INVALID, False

    @classmethod
    def wildcard(cls) -> "Version":
        return cls(0)

    def is_valid(self) -> bool:
        return self.major >= 0

    def is_wildcard(self) -> bool:
        return self == Version.wildcard()

    def less(self, other: "Version") -> bool:
        return self.sort_key[:3] < other.sort_key[:3]

    def contains(self, other: "Version") -> bool:
        """Report whether every field set here matches other."""
        if not (self.is_valid() and other.is_valid()):
            return False
        if self.unstable != other.unstable or self.major != other.major:
            return False
        if self.minor is not None and self.minor != other.minor:
            return False
        if self.patch is not None and self.patch != other.patch:
            return False
        return True

    @property
    def sort_key(self) -> tuple[int, int, int, bool]:
        # Unset fields sort below 0.
        return (
            self.major,
            -1 if self.minor is None else self.minor,
            -1 if self.patch is None else self.patch,
            self.unstable,
        )

    def __str__(self) -> str:
        if not self.is_valid():
            return "invalid"
        token = f"v{self.major}"
        if self.minor is not None:
            token += f".{self.minor}"
            if self.patch is not None:
                token += f".{self.patch}"
        if self.unstable:
            token += UNSTABLE_SUFFIX
        return token


Version.INVALID = Version(-1)


def less(a: Version, b: Version) -> bool:
    return a.less(b)


def contains(a: Version, b: Version) -> bool:
    return a.contains(b)


def is_valid(version: Version) -> bool:
    return version.is_valid()
