from dataclasses import dataclass, field
import logging
from typing import Optional, Sequence

from pkt_lines import RefRecord, encode_ref_line, parse_refs
from ref_versions import ACCEPTED_FORMS, Version

HEAD_REF = 'HEAD'
MASTER_REF = 'refs/heads/master'
BRANCH_PREFIX = 'refs/heads/'
TAG_PREFIX = 'refs/tags/'
VERSION_REF_PREFIXES = (BRANCH_PREFIX + 'v', TAG_PREFIX + 'v')

SYMREF_CAPABILITY = b'symref='
OLDREF_CAPABILITY = b'oldref='

logger = logging.getLogger(__name__)


class VersionNotFound(LookupError):
    def __init__(self, requested: Version):
        super().__init__(f"no reference matching {requested}; accepted forms are {ACCEPTED_FORMS}")
        self.requested = requested


@dataclass(frozen=True)
class Selection:
    best: Optional[RefRecord]
    version: Version
    versions: list[Version] = field(default_factory=list)


@dataclass(frozen=True)
class RewriteResult:
    data: bytes
    versions: list[Version]
    selected: Optional[RefRecord] = None
    version: Version = Version.INVALID


def version_token(name: str) -> Optional[str]:
    if not name.startswith(VERSION_REF_PREFIXES):
        return None
    if name.startswith(BRANCH_PREFIX):
        return name[len(BRANCH_PREFIX):]
    return name[len(TAG_PREFIX):]


def select_ref(refs: Sequence[RefRecord], requested: Version, strict: bool = False) -> Selection:
    """Pick the highest version ref contained by `requested`.

    Equal versions keep the latest candidate, except that an unpeeled ref
    never displaces a peeled tag. With `strict`, lightweight tags are ignored.
    """
    best: Optional[RefRecord] = None
    best_version = Version.INVALID
    versions: set[Version] = set()
    for ref in refs:
        token = version_token(ref.name)
        if token is None:
            continue
        if strict and ref.name.startswith(TAG_PREFIX) and not ref.peeled:
            continue
        version, ok = Version.try_parse(token)
        if not ok:
            continue
        versions.add(version)
        if not requested.contains(version):
            continue
        if best is not None:
            if version.less(best_version):
                continue
            if version == best_version and best.peeled and not ref.peeled:
                continue
        best, best_version = ref, version
    return Selection(best, best_version, sorted(versions, key=lambda v: v.sort_key))


def rename_symref_capabilities(capabilities: bytes) -> bytes:
    """Turn every symref=... capability into oldref=...

    HEAD is about to point elsewhere, so the advertised symbolic target is stale.
    """
    return b' '.join(
        OLDREF_CAPABILITY + token[len(SYMREF_CAPABILITY):] if token.startswith(SYMREF_CAPABILITY) else token
        for token in capabilities.split(b' ')
    )


def head_capabilities(selected: RefRecord, original: Optional[bytes]) -> Optional[bytes]:
    preserved = rename_symref_capabilities(original) if original else b''
    if selected.name.startswith(BRANCH_PREFIX):
        symref = SYMREF_CAPABILITY + f'{HEAD_REF}:{selected.name}'.encode()
        return symref + b' ' + preserved if preserved else symref
    return preserved or None


def _find_ref(refs: Sequence[RefRecord], name: str) -> Optional[RefRecord]:
    for ref in refs:
        if ref.name == name and not ref.peeled:
            return ref
    return None


def _excise(data: bytes, start: int, end: int, span: Optional[RefRecord]) -> bytes:
    if span is None or span.start < start or span.end > end:
        return data[start:end]
    return data[start:span.start] + data[span.end:end]


def rewrite_refs(data: bytes, requested: Version, strict: bool = False) -> RewriteResult:
    refs = parse_refs(data)
    selection = select_ref(refs, requested, strict)
    best = selection.best

    if best is None and requested.is_wildcard() and not (strict and selection.versions):
        logger.debug("No version reference for %s, serving the default branch", requested)
        return RewriteResult(data, selection.versions)

    head = _find_ref(refs, HEAD_REF)
    if head is None or best is None:
        raise VersionNotFound(requested)

    logger.debug("Selected %s (%s) at %s for %s", best.full_name, selection.version, best.object_id, requested)

    master = _find_ref(refs, MASTER_REF)
    parts = [
        _excise(data, 0, head.start, master),
        encode_ref_line(best.object_id, HEAD_REF, head_capabilities(best, head.capabilities)),
        encode_ref_line(best.object_id, MASTER_REF),
        _excise(data, head.end, len(data), master),
    ]
    return RewriteResult(b''.join(parts), selection.versions, best, selection.version)
