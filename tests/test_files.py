"""
Tests for directory bootstrap and forced-attachment downloads.
"""

import os
import stat

import pytest

from webtoolkit.core.errors import FileNotFound
from webtoolkit.core.files import create_dir_if_not_exists, download_static_file


# ---------------------------------------------------------------------------
# create_dir_if_not_exists
# ---------------------------------------------------------------------------

class TestCreateDirIfNotExists:
    def test_creates_missing_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"
        create_dir_if_not_exists(str(target))
        assert target.is_dir()

    def test_is_idempotent(self, tmp_path):
        target = tmp_path / "uploads"
        create_dir_if_not_exists(str(target))
        (target / "keep.txt").write_text("x")
        create_dir_if_not_exists(str(target))
        assert (target / "keep.txt").read_text() == "x"

    def test_mode_is_0755_under_default_umask(self, tmp_path):
        old_umask = os.umask(0o022)
        try:
            target = tmp_path / "mode"
            create_dir_if_not_exists(str(target))
        finally:
            os.umask(old_umask)
        assert stat.S_IMODE(target.stat().st_mode) == 0o755

    def test_filesystem_errors_propagate(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(OSError):
            create_dir_if_not_exists(str(blocker / "child"))


# ---------------------------------------------------------------------------
# download_static_file
# ---------------------------------------------------------------------------

class TestDownloadStaticFile:
    def test_forces_attachment(self, tmp_path, make_client, jpeg_bytes):
        source = tmp_path / "image.jpeg"
        source.write_bytes(jpeg_bytes)

        def register(app):
            @app.get("/download")
            async def download():
                return download_static_file(str(source), "netflix.jpeg")

        response = make_client(register).get("/download")

        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="netflix.jpeg"'
        assert response.content == jpeg_bytes
        assert int(response.headers["content-length"]) == len(jpeg_bytes)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFound) as exc_info:
            download_static_file(str(tmp_path / "nope.txt"), "nope.txt")
        assert exc_info.value.status_code == 404

    def test_missing_file_through_app(self, tmp_path, make_client):
        def register(app):
            @app.get("/download")
            async def download():
                return download_static_file(str(tmp_path / "nope.txt"), "nope.txt")

        response = make_client(register).get("/download")

        assert response.status_code == 404
        assert response.json() == {"error": True, "message": "file not found"}
