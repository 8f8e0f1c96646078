import pytest

from pkt_lines import encode_pkt_line, encode_ref_line

SERVICE_BANNER = encode_pkt_line(b"# service=git-upload-pack\n") + b"0000"
HEAD_CAPABILITIES = b"multi_ack thin-pack side-band side-band-64k ofs-delta symref=HEAD:refs/heads/master agent=git/github-g"


def build_advertisement(refs, head=None, capabilities=HEAD_CAPABILITIES, banner=True) -> bytes:
    """Build an info/refs body from (object_id, name) pairs.

    A HEAD line carrying `capabilities` is put first unless `head` is False.
    """
    lines = [SERVICE_BANNER] if banner else []
    if head is not False:
        lines.append(encode_ref_line(head or "0" * 40, "HEAD", capabilities))
    lines.extend(encode_ref_line(object_id, name) for object_id, name in refs)
    lines.append(b"0000")
    return b"".join(lines)


@pytest.fixture
def advertisement():
    return build_advertisement
