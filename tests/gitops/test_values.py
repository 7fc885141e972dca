from pathlib import Path

import pytest
import yaml

from kubeseed.gitops.values import update_image_tag


def _values(tmp_path: Path, text: str) -> Path:
    f = tmp_path / "values.yaml"
    f.write_text(text)
    return f


def test_updates_tag_and_keeps_key_order(tmp_path: Path):
    f = _values(tmp_path, "replicaCount: 2\nimage:\n  repository: ghcr.io/acme/app\n  tag: v1\nservice:\n  port: 80\n")

    assert update_image_tag(f, "v2") is True

    data = yaml.safe_load(f.read_text())
    assert data["image"] == {"repository": "ghcr.io/acme/app", "tag": "v2"}
    assert list(data) == ["replicaCount", "image", "service"]


def test_sets_repository_when_given(tmp_path: Path):
    f = _values(tmp_path, "image:\n  tag: v1\n")
    assert update_image_tag(f, "v1", "ghcr.io/acme/other") is True
    assert yaml.safe_load(f.read_text())["image"]["repository"] == "ghcr.io/acme/other"


def test_unchanged_returns_false(tmp_path: Path):
    original = "image:\n  tag: v1\n"
    f = _values(tmp_path, original)
    assert update_image_tag(f, "v1") is False
    assert f.read_text() == original


def test_missing_image_section_is_created(tmp_path: Path):
    f = _values(tmp_path, "replicaCount: 1\n")
    assert update_image_tag(f, "abc123")
    assert yaml.safe_load(f.read_text())["image"] == {"tag": "abc123"}


@pytest.mark.parametrize("text", ["- a\n- b\n", "image: nginx:latest\n"])
def test_unexpected_shapes_raise(tmp_path: Path, text):
    with pytest.raises(ValueError):
        update_image_tag(_values(tmp_path, text), "v2")


def test_empty_tag_and_missing_file(tmp_path: Path):
    with pytest.raises(ValueError):
        update_image_tag(_values(tmp_path, "image: {}\n"), "")
    with pytest.raises(FileNotFoundError):
        update_image_tag(tmp_path / "nope.yaml", "v2")
