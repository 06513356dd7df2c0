import hashlib

from PIL import Image

from adlib_scraper.hashing import fingerprint_asset, image_dimensions, sha256_file


def test_fingerprint_png(tmp_path):
    path = tmp_path / "logo.png"
    Image.new("RGB", (12, 7), (255, 0, 0)).save(path, format="PNG")
    fp = fingerprint_asset(str(path))
    assert fp.sha256 == hashlib.sha256(path.read_bytes()).hexdigest()
    assert (fp.width, fp.height) == (12, 7)


def test_image_dimensions_for_non_raster(tmp_path):
    path = tmp_path / "logo.svg"
    path.write_text("<svg xmlns='http://www.w3.org/2000/svg'/>", encoding="utf-8")
    assert image_dimensions(str(path)) == (None, None)
    assert len(sha256_file(str(path))) == 64


def test_image_dimensions_past_pixel_limit(tmp_path, monkeypatch):
    path = tmp_path / "huge.png"
    Image.new("RGB", (100, 100)).save(path, format="PNG")
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    assert image_dimensions(str(path)) == (None, None)
    fp = fingerprint_asset(str(path))
    assert len(fp.sha256) == 64
    assert fp.width is None
