"""Tests for clab.keys."""

import pytest

from clab.keys import ROOT_SEGMENT, Level, PathKeyCodec, display_path, normalize_path


class TestNormalizePath:
    """Tests for normalize_path."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("src/app.py", "src/app.py"),
            ("./src//app.py", "src/app.py"),
            ("/src/app.py", "src/app.py"),
            ("src\\lib\\util.py", "src/lib/util.py"),
            (".", ""),
            ("", ""),
            ("src/", "src"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_display_path_shows_root_as_dot(self):
        assert display_path("") == "."
        assert display_path("./src") == "src"


class TestPathKeyCodec:
    """Tests for PathKeyCodec."""

    def setup_method(self):
        self.codec = PathKeyCodec()

    def test_encode_appends_level_file(self):
        assert self.codec.encode("src/app.py", Level.FILE) == "src/app.py/file.json"
        assert self.codec.encode("src", "directory") == "src/directory.json"

    def test_unsafe_characters_become_underscores(self):
        assert self.codec.sanitize("my dir/fi le$.py") == "my_dir/fi_le_.py"

    def test_root_maps_to_reserved_segment(self):
        assert self.codec.sanitize("") == ROOT_SEGMENT
        assert self.codec.sanitize(".") == ROOT_SEGMENT
        assert self.codec.encode("/", Level.DIRECTORY) == f"{ROOT_SEGMENT}/directory.json"

    def test_root_segment_cannot_collide_with_real_path(self):
        assert self.codec.sanitize("@root") != ROOT_SEGMENT

    def test_parent_segments_never_escape(self):
        assert ".." not in self.codec.sanitize("../secrets").split("/")

    def test_encoding_is_deterministic(self):
        assert self.codec.encode("a/b c.txt", "file") == self.codec.encode("./a/b c.txt", "file")

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            self.codec.encode("src", "galaxy")

    def test_collides_detects_lossy_sanitization(self):
        assert self.codec.collides("a b", "a_b")
        assert not self.codec.collides("a/b", "./a/b")
        assert not self.codec.collides("a", "b")
