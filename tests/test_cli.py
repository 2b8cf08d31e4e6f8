"""Tests for the sunflower CLI."""

from pathlib import Path

import pytest
import yaml

from sunflower import cli
from sunflower.config.loader import ACCESS_KEY_ENV_VAR
from sunflower.retrieval.unsplash_client import UnsplashSearchResponse, UnsplashService

SEED_FILE = Path(__file__).resolve().parents[1] / "data" / "plants.json"


@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.delenv(ACCESS_KEY_ENV_VAR, raising=False)


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "sunflower.config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "database": {"sqlite_path": str(tmp_path / "garden.db"), "seed_file": str(SEED_FILE)},
                "state": {"path": str(tmp_path / "state.json")},
                "workers": {"max_workers": 2},
            }
        ),
        encoding="utf-8",
    )
    return path


def run(config_path, *argv):
    return cli.main(["--config", str(config_path), "--timeout", "10", *argv])


def test_zone_command(capsys):
    assert cli.main(["zone", "-35"]) == 0
    assert capsys.readouterr().out.strip() == "9"


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_init_seeds_once(config_path, capsys):
    assert run(config_path, "init") == 0
    assert "Seeded 10 plants" in capsys.readouterr().out

    assert run(config_path, "init") == 0
    assert "already exists" in capsys.readouterr().out


def test_plants_zone_is_remembered(config_path, capsys):
    """Test that --zone filters and is restored on the next run."""
    run(config_path, "init")
    capsys.readouterr()

    assert run(config_path, "plants", "--zone", "9") == 0
    out = capsys.readouterr().out
    assert "Grow zone 9" in out
    assert "Tomato" in out and "Apple" not in out

    assert run(config_path, "plants") == 0
    out = capsys.readouterr().out
    assert "Grow zone 9" in out

    assert run(config_path, "plants", "--clear-zone", "--query", "apple") == 0
    out = capsys.readouterr().out
    assert "Grow zone" not in out
    assert "Apple" in out and "Tomato" not in out


def test_garden_add_list_remove(config_path, capsys):
    run(config_path, "init")
    assert run(config_path, "garden") == 0
    assert "empty" in capsys.readouterr().out

    assert run(config_path, "garden-add", "beta-vulgaris") == 0
    assert "Planted beta-vulgaris" in capsys.readouterr().out

    assert run(config_path, "garden") == 0
    assert "Beet" in capsys.readouterr().out

    assert run(config_path, "plant", "beta-vulgaris") == 0
    assert "In garden: yes" in capsys.readouterr().out

    assert run(config_path, "garden-remove", "1") == 0
    assert "Removed planting 1" in capsys.readouterr().out
    assert run(config_path, "garden-remove", "1") == 0
    assert "was not in the garden" in capsys.readouterr().out


def test_garden_add_unknown_plant_fails(config_path, capsys):
    run(config_path, "init")
    assert run(config_path, "garden-add", "no-such-plant") == 1
    assert "Error" in capsys.readouterr().err


def test_plant_not_found(config_path, capsys):
    run(config_path, "init")
    assert run(config_path, "plant", "no-such-plant") == 1


def test_gallery_without_access_key(config_path, capsys):
    assert run(config_path, "gallery", "tomato") == 1
    assert "access key" in capsys.readouterr().err


@pytest.fixture
def gallery_config(tmp_path, monkeypatch):
    """Config with an access key and a stubbed photo search that records requested pages."""
    requested = []

    def _search_photos(self, query, page, per_page):
        requested.append(page)
        return UnsplashSearchResponse.model_validate(
            {
                "total_pages": 5,
                "results": [
                    {
                        "id": f"{query}-{page}",
                        "urls": {"small": f"https://images.example/{query}/{page}.jpg"},
                        "user": {"name": "Ada", "username": "ada"},
                    }
                ],
            }
        )

    monkeypatch.setattr(UnsplashService, "search_photos", _search_photos)
    path = tmp_path / "gallery.config.yaml"
    path.write_text(yaml.safe_dump({"unsplash": {"access_key": "test-key"}}), encoding="utf-8")
    return path, requested


def test_gallery_loads_requested_page_count(gallery_config, capsys):
    """Test that --pages N requests exactly pages 1..N."""
    config_path, requested = gallery_config

    assert run(config_path, "gallery", "fern", "--pages", "1") == 0
    assert requested == [1]
    assert "1 photos from 1 pages" in capsys.readouterr().out

    requested.clear()
    assert run(config_path, "gallery", "fern", "--pages", "3") == 0
    assert requested == [1, 2, 3]
    assert "3 photos from 3 pages" in capsys.readouterr().out
