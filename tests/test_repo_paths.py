"""Tests for vanity and upstream path composition."""

import pytest

from ref_versions import Version
from repo_paths import RepoRoot, split_package


@pytest.fixture
def root():
    return RepoRoot.from_urls("https://github.com/upper", "https://upper.io")


class TestRepoRoot:
    """Tests for parsing the configured roots."""

    def test_host_paths(self, root):
        assert root.repo_host_path == "github.com/upper"
        assert root.vanity_host_path == "upper.io"
        assert root.repo_scheme == root.vanity_scheme == "https"

    def test_scheme_defaults_to_https(self):
        root = RepoRoot.from_urls("github.com/upper", "http://go.example.org/pkgs/")
        assert root.repo_scheme == "https"
        assert root.repo_host_path == "github.com/upper"
        assert root.vanity_scheme == "http"
        assert root.vanity_host_path == "go.example.org/pkgs"

    @pytest.mark.parametrize("url", ["", "https://", "https://github.com/upper?x=1"])
    def test_malformed_root(self, url):
        with pytest.raises(ValueError):
            RepoRoot.from_urls(url, "https://upper.io")


class TestSplitPackage:
    """Tests for split_package."""

    def test_bare_name(self):
        assert split_package("db") == ("db", None)

    def test_with_version(self):
        assert split_package("db.v3") == ("db", "v3")
        assert split_package("go-db.v3.1.2-unstable") == ("go-db", "v3.1.2-unstable")

    @pytest.mark.parametrize("package", ["", "db.", "db.3", "db.v1.2.3.4", "d_b", "db\n", "db.v1\n"])
    def test_malformed(self, package):
        with pytest.raises(ValueError):
            split_package(package)


class TestRepo:
    """Tests for the per-request repository paths."""

    def test_unversioned(self, root):
        repo = root.new_repo("db")
        assert repo.requested_version == Version.wildcard()
        assert repo.repo_root == "github.com/upper/db"
        assert repo.vanity_root == "upper.io/db"
        assert repo.vanity_path == "upper.io/db"
        assert repo.vanity_url == "https://upper.io/db"
        assert repo.repo_root_url == "https://github.com/upper/db"
        assert repo.upload_pack_url == "https://github.com/upper/db/git-upload-pack"
        assert repo.git_tree == "master"

    def test_versioned(self, root):
        repo = root.new_repo("db", "v3")
        assert repo.requested_version == Version.parse("v3")
        assert repo.vanity_path == "upper.io/db.v3"
        assert repo.vanity_url == "https://upper.io/db.v3"
        assert repo.repo_root == "github.com/upper/db"

    def test_git_tree_uses_resolved_version(self, root):
        repo = root.new_repo("db", "v3")
        assert repo.git_tree == "master"
        repo.set_versions([Version.parse("v3.1.0"), Version.parse("v3.2.0")], Version.parse("v3.2.0"))
        assert repo.git_tree == "v3.2.0"
        assert repo.all_versions == [Version.parse("v3.1.0"), Version.parse("v3.2.0")]

    def test_bad_version_token(self, root):
        with pytest.raises(ValueError):
            root.new_repo("db", "v03")
