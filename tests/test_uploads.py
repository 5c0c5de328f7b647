"""
Tests for the multipart upload processor.
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from webtoolkit.core.config import UploadConfig
from webtoolkit.core.errors import UploadError
from webtoolkit.core.text import RANDOM_STRING_SOURCE
from webtoolkit.services.uploads import upload_files, upload_one_file


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _upload_routes(upload_dir, config, rename=True):
    """Routes that report results, and partial results on failure, as JSON."""

    def register(app):
        @app.post("/upload")
        async def upload(request: Request):
            try:
                files = await upload_files(request, str(upload_dir), config, rename=rename)
            except UploadError as e:
                return JSONResponse(
                    status_code=e.status_code,
                    content={"error": e.message, "written": [f.new_name for f in e.uploaded_files]},
                )
            return [
                {"new": f.new_name, "original": f.original_name, "size": f.size_bytes}
                for f in files
            ]

        @app.post("/upload-one")
        async def upload_one(request: Request):
            item = await upload_one_file(request, str(upload_dir), config, rename=rename)
            return {"new": item.new_name, "original": item.original_name, "size": item.size_bytes}

    return register


IMAGE_TYPES = UploadConfig(allowed_content_types={"image/jpeg", "image/png"})


# ---------------------------------------------------------------------------
# upload_files
# ---------------------------------------------------------------------------

class TestUploadFiles:
    def test_allowed_without_rename_keeps_name_and_size(self, tmp_path, make_client, png_bytes):
        client = make_client(_upload_routes(tmp_path / "uploads", IMAGE_TYPES, rename=False))

        response = client.post("/upload", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 200
        assert response.json() == [{"new": "img.png", "original": "img.png", "size": len(png_bytes)}]
        assert (tmp_path / "uploads" / "img.png").read_bytes() == png_bytes

    def test_allowed_with_rename(self, tmp_path, make_client, png_bytes):
        client = make_client(_upload_routes(tmp_path, IMAGE_TYPES))

        response = client.post("/upload", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 200
        [item] = response.json()
        assert item["original"] == "img.png"
        assert item["new"].endswith(".png")
        stem = item["new"][: -len(".png")]
        assert len(stem) == 10
        assert set(stem) <= set(RANDOM_STRING_SOURCE)
        assert (tmp_path / item["new"]).stat().st_size == len(png_bytes)

    def test_disallowed_type_writes_nothing(self, tmp_path, make_client, png_bytes):
        config = UploadConfig(allowed_content_types={"image/jpeg"})
        client = make_client(_upload_routes(tmp_path, config, rename=False))

        response = client.post("/upload", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 400
        assert response.json() == {"error": "uploaded file type not allowed", "written": []}
        assert not (tmp_path / "img.png").exists()

    def test_type_comes_from_content_not_header(self, tmp_path, make_client, png_bytes):
        config = UploadConfig(allowed_content_types={"image/jpeg"})
        client = make_client(_upload_routes(tmp_path, config, rename=False))

        response = client.post("/upload", files={"file": ("img.jpg", png_bytes, "image/jpeg")})

        assert response.status_code == 400

    def test_allowed_types_match_case_insensitively(self, tmp_path, make_client, png_bytes):
        config = UploadConfig(allowed_content_types={"IMAGE/PNG"})
        client = make_client(_upload_routes(tmp_path, config, rename=False))

        response = client.post("/upload", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 200

    def test_empty_allow_list_accepts_anything(self, tmp_path, make_client):
        client = make_client(_upload_routes(tmp_path, UploadConfig(), rename=False))

        response = client.post("/upload", files={"doc": ("notes.txt", b"hello", "text/plain")})

        assert response.status_code == 200
        assert (tmp_path / "notes.txt").read_bytes() == b"hello"

    def test_all_fields_are_processed(self, tmp_path, make_client, png_bytes, jpeg_bytes):
        client = make_client(_upload_routes(tmp_path, IMAGE_TYPES, rename=False))

        response = client.post(
            "/upload",
            files=[
                ("first", ("a.png", png_bytes, "image/png")),
                ("second", ("b.jpg", jpeg_bytes, "image/jpeg")),
                ("second", ("c.png", png_bytes, "image/png")),
            ],
            data={"note": "not a file"},
        )

        assert response.status_code == 200
        assert sorted(item["original"] for item in response.json()) == ["a.png", "b.jpg", "c.png"]
        assert (tmp_path / "b.jpg").read_bytes() == jpeg_bytes

    def test_failure_keeps_files_already_written(self, tmp_path, make_client, png_bytes):
        client = make_client(_upload_routes(tmp_path, IMAGE_TYPES, rename=False))

        response = client.post(
            "/upload",
            files=[
                ("file", ("good.png", png_bytes, "image/png")),
                ("file", ("bad.txt", b"plain text", "text/plain")),
            ],
        )

        assert response.status_code == 400
        assert response.json() == {"error": "uploaded file type not allowed", "written": ["good.png"]}
        assert (tmp_path / "good.png").exists()
        assert not (tmp_path / "bad.txt").exists()

    def test_payload_too_large(self, tmp_path, make_client, png_bytes):
        config = UploadConfig(max_total_bytes=100)
        client = make_client(_upload_routes(tmp_path / "uploads", config, rename=False))

        response = client.post("/upload", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 413
        assert response.json()["error"] == "uploaded file is too big"
        assert list((tmp_path / "uploads").iterdir()) == []

    def test_client_path_is_stripped_from_name(self, tmp_path, make_client):
        client = make_client(_upload_routes(tmp_path / "uploads", UploadConfig(), rename=False))

        response = client.post("/upload", files={"file": ("../../evil.txt", b"x", "text/plain")})

        assert response.status_code == 200
        assert response.json()[0]["new"] == "evil.txt"
        assert (tmp_path / "uploads" / "evil.txt").exists()


# ---------------------------------------------------------------------------
# upload_one_file
# ---------------------------------------------------------------------------

class TestUploadOneFile:
    def test_returns_first_file(self, tmp_path, make_client, png_bytes):
        client = make_client(_upload_routes(tmp_path, IMAGE_TYPES, rename=False))

        response = client.post("/upload-one", files={"file": ("img.png", png_bytes, "image/png")})

        assert response.status_code == 200
        assert response.json() == {"new": "img.png", "original": "img.png", "size": len(png_bytes)}

    def test_no_file(self, tmp_path, make_client):
        client = make_client(_upload_routes(tmp_path, IMAGE_TYPES))

        response = client.post("/upload-one", data={"note": "nothing attached"})

        assert response.status_code == 400
        assert response.json() == {"error": True, "message": "no file was uploaded"}
