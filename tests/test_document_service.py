import os

import pytest

from app.services.document_service import (
    DocumentService,
    InvalidDocumentName,
    pick_fallback_map_id,
)
from conftest import seed_world


def test_list_worlds_creates_the_directory(tmp_path):
    service = DocumentService(str(tmp_path / "worlds"))
    assert service.list_worlds() == []
    assert os.path.isdir(tmp_path / "worlds")


def test_create_world_lays_out_folders(files, tmp_path):
    meta = files.create_world("w1", "First")

    assert meta == {"id": "w1", "name": "First", "rootMapId": None}
    for folder in ("configs", "maps", "music", "images"):
        assert os.path.isdir(tmp_path / "worlds" / "w1" / folder)
    assert files.list_worlds() == ["w1"]


def test_create_world_never_clobbers(files):
    files.create_world("w1", "First")
    files.put_document("w1", "world.json", {"id": "w1", "name": "Edited", "rootMapId": "m1"})

    files.create_world("w1", "Again")

    assert files.get_document("w1", "world.json")["name"] == "Edited"


def test_create_world_defaults_name_to_id(files):
    assert files.create_world("w9")["name"] == "w9"


def test_put_and_get_round_trip_leaves_no_temp_files(files, tmp_path):
    files.put_document("w1", "maps.json", [{"id": "m1"}])

    assert files.get_document("w1", "maps.json") == [{"id": "m1"}]
    assert os.listdir(tmp_path / "worlds" / "w1" / "configs") == ["maps.json"]


def test_missing_or_unreadable_documents_read_as_none(files, tmp_path):
    assert files.get_document("w1", "world.json") is None
    files.put_document("w1", "m1.json", {"id": "m1"})
    (tmp_path / "worlds" / "w1" / "configs" / "m1.json").write_text("{half")
    assert files.get_document("w1", "m1.json") is None


@pytest.mark.parametrize("world_id,name", [
    ("../etc", "world.json"),
    ("w1", "../world.json"),
    ("w1", "notes.txt"),
    ("w1", "sub/maps.json"),
    ("", "world.json"),
])
def test_names_that_could_escape_are_rejected(files, world_id, name):
    with pytest.raises(InvalidDocumentName):
        files.get_document(world_id, name)


def test_deleting_root_map_rewrites_index_and_world(files, seeded):
    changes = files.delete_document(seeded, "m1.json")

    assert [name for name, _ in changes] == ["m1.json", "maps.json", "world.json"]
    assert changes[0][1] is None
    assert [m["id"] for m in changes[1][1]] == ["m2", "m3"]
    assert changes[2][1]["rootMapId"] == "m3"
    assert "updatedAt" in changes[2][1]
    assert files.get_document(seeded, "m1.json") is None
    assert files.get_document(seeded, "world.json")["rootMapId"] == "m3"


def test_deleting_other_map_keeps_root(files, seeded):
    changes = files.delete_document(seeded, "m2.json")
    assert changes[2][1]["rootMapId"] == "m1"


def test_deleting_a_missing_map_still_cleans_the_index(files, seeded):
    files.put_document(seeded, "maps.json", [{"id": "m1", "level": 0}, {"id": "ghost", "level": 0}])
    changes = files.delete_document(seeded, "ghost.json")
    assert [m["id"] for m in changes[1][1]] == ["m1"]


def test_deleting_non_map_documents_has_no_side_effects(files, seeded):
    assert files.delete_document(seeded, "maps.json") == [("maps.json", None)]
    assert files.get_document(seeded, "world.json")["rootMapId"] == "m1"


def test_map_delete_without_world_json(files):
    files.put_document("w2", "maps.json", [{"id": "a", "level": 0}])
    files.put_document("w2", "a.json", {"id": "a"})
    changes = files.delete_document("w2", "a.json")
    assert [name for name, _ in changes] == ["a.json", "maps.json"]


@pytest.mark.parametrize("maps,expected", [
    ([{"id": "a", "level": 1}, {"id": "b", "level": 0}], "b"),
    ([{"id": "a", "level": 2}, {"id": "b", "level": 1}], "a"),
    ([{"id": "a"}], "a"),
    (["junk", {"level": 0}], None),
    ([], None),
])
def test_pick_fallback_map_id(maps, expected):
    assert pick_fallback_map_id(maps) == expected


def test_seed_helper_matches_the_store_layout(files):
    seed_world(files, "w5")
    assert [m["id"] for m in files.get_document("w5", "maps.json")] == ["m1", "m2", "m3"]
