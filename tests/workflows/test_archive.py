"""Tests for archive extraction."""

from __future__ import annotations

import gzip
import io
import json
import os
import subprocess
import sys
import tarfile
from pathlib import Path

import pytest
from _support.builders import make_tar

from ucd_spine.core.errors import EmptyArchiveError, InvalidArchiveError
from ucd_spine.manifests.archive import build_manifest_archive
from ucd_spine.manifests.models import Manifest
from ucd_spine.workflows.archive import ExtractedFile, extract_archive, is_gzip


class TestExtractArchive:
    def test_plain_tar(self):
        data = make_tar({"UnicodeData.txt": b"0041;LATIN", "auxiliary/WordBreak.txt": b"x"})
        extracted = extract_archive(data)
        assert [f.name for f in extracted] == ["UnicodeData.txt", "auxiliary/WordBreak.txt"]
        assert extracted[0].data == b"0041;LATIN"

    def test_gzip_detected_by_magic(self):
        data = make_tar({"a.txt": b"a"}, compress=True)
        assert is_gzip(data)
        assert extract_archive(data) == [ExtractedFile("a.txt", b"a")]

    def test_directories_and_empty_files_skipped(self):
        data = make_tar(
            {"empty.txt": b"", "kept.txt": b"k"}, directories=("auxiliary/", "extracted/")
        )
        assert [f.name for f in extract_archive(data)] == ["kept.txt"]

    def test_dot_slash_prefix_stripped(self):
        data = make_tar({"./ucd/Blocks.txt": b"b"})
        assert extract_archive(data)[0].name == "ucd/Blocks.txt"

    @pytest.mark.parametrize("name", ["../escape.txt", "/etc/passwd", "a/../../b.txt"])
    def test_unsafe_names_skipped(self, name):
        data = make_tar({name: b"x", "safe.txt": b"s"})
        assert [f.name for f in extract_archive(data)] == ["safe.txt"]

    def test_symlinks_skipped(self):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tf:
            link = tarfile.TarInfo("link.txt")
            link.type = tarfile.SYMTYPE
            link.linkname = "/etc/passwd"
            tf.addfile(link)
        with pytest.raises(EmptyArchiveError):
            extract_archive(buffer.getvalue())

    def test_repeated_name_keeps_last_entry(self):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w") as tf:
            for name, content in [
                ("Blocks.txt", b"old"),
                ("ReadMe.txt", b"r"),
                ("./Blocks.txt", b"new"),
            ]:
                info = tarfile.TarInfo(name)
                info.size = len(content)
                tf.addfile(info, io.BytesIO(content))

        extracted = extract_archive(buffer.getvalue())

        assert extracted == [ExtractedFile("Blocks.txt", b"new"), ExtractedFile("ReadMe.txt", b"r")]

    def test_only_directories_is_empty(self):
        with pytest.raises(EmptyArchiveError) as exc_info:
            extract_archive(make_tar({}, directories=("ucd/",)))
        assert exc_info.value.message == "No valid files found in TAR archive"

    def test_garbage_is_invalid(self):
        with pytest.raises(InvalidArchiveError):
            extract_archive(b"this is not a tar archive at all" * 20)

    def test_corrupt_gzip_is_invalid(self):
        with pytest.raises(InvalidArchiveError):
            extract_archive(b"\x1f\x8b" + b"\x00" * 30)

    def test_gzip_of_garbage_is_invalid(self):
        with pytest.raises(InvalidArchiveError):
            extract_archive(gzip.compress(b"not a tar" * 100))


class TestExtractedFile:
    def test_json_form_is_serializable(self):
        original = ExtractedFile("bin.dat", bytes(range(256)))
        payload = json.loads(json.dumps(original.to_json()))
        assert ExtractedFile.from_json(payload) == original


class TestBuildManifestArchive:
    def test_single_manifest_entry(self):
        manifest = Manifest(expected_files=["a.txt"])
        (entry,) = extract_archive(build_manifest_archive(manifest))
        assert entry.name == "manifest.json"
        assert Manifest.from_bytes(entry.data) == manifest

    def test_gzip_variant(self):
        assert is_gzip(build_manifest_archive(Manifest(), gzip=True))


@pytest.mark.parametrize(
    "module", ["ucd_spine.workflows.archive", "ucd_spine.workflows", "ucd_spine.manifests"]
)
def test_module_imports_in_fresh_interpreter(module):
    src = Path(__file__).resolve().parents[2] / "src"
    env = {**os.environ, "PYTHONPATH": str(src)}
    completed = subprocess.run(
        [sys.executable, "-c", f"import {module}"], env=env, capture_output=True, text=True
    )
    assert completed.returncode == 0, completed.stderr
