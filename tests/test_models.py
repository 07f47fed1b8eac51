import pytest

from client.game.documents import (
    DocumentKind,
    classify_document,
    map_document_name,
    map_id_from_document,
)
from client.game.models import (
    ElementType,
    InteractiveElement,
    MalformedNotification,
    MapFull,
    MapRef,
    World,
    build_index,
    parse_full_map,
    parse_index,
    parse_map,
    parse_world,
    pick_fallback_map,
)


@pytest.mark.parametrize("name,kind", [
    ("world.json", DocumentKind.WORLD),
    ("configs/world.json", DocumentKind.WORLD),
    ("maps.json", DocumentKind.MAP_INDEX),
    ("map_1700000000000.json", DocumentKind.MAP),
    ("m1.json", DocumentKind.MAP),
    ("notes.txt", DocumentKind.OTHER),
    (".json", DocumentKind.OTHER),
    ("", DocumentKind.OTHER),
    (None, DocumentKind.OTHER),
])
def test_classify_document(name, kind):
    assert classify_document(name) == kind


def test_map_document_names():
    assert map_document_name("m7") == "m7.json"
    assert map_id_from_document("m7.json") == "m7"
    assert map_id_from_document("maps.json") is None
    assert map_id_from_document("world.json") is None


def test_world_uses_camel_case_on_the_wire():
    world = parse_world({"id": "w1", "name": "W", "rootMapId": "m1", "updatedAt": "x"})
    assert world.root_map_id == "m1"
    doc = world.to_document()
    assert doc["rootMapId"] == "m1"
    assert "root_map_id" not in doc


def test_world_accepts_legacy_wrapper_and_json_text():
    assert parse_world({"world": {"id": "w1", "name": "Old"}}).name == "Old"
    assert parse_world('{"id": "w2"}').id == "w2"


def test_unknown_keys_survive_a_round_trip():
    doc = {"id": "m1", "name": "Town", "elements": [], "fogOfWar": {"enabled": True}}
    assert parse_full_map(doc).to_document()["fogOfWar"] == {"enabled": True}


def test_parse_map_is_full_only_with_elements():
    assert isinstance(parse_map({"id": "m1", "elements": []}), MapFull)
    ref = parse_map({"id": "m1", "name": "Town"})
    assert type(ref) is MapRef
    assert not ref.is_full


def test_parse_full_map_defaults_elements():
    full = parse_full_map({"id": "m1"})
    assert full.is_full
    assert full.elements == []


def test_missing_level_is_root():
    assert parse_map({"id": "m1", "level": None}).level == 0


@pytest.mark.parametrize("bad", [
    "not json",
    [1, 2],
    {"name": "no id"},
])
def test_parse_world_rejects_bad_shapes(bad):
    with pytest.raises(MalformedNotification):
        parse_world(bad)


def test_parse_index_requires_a_list():
    with pytest.raises(MalformedNotification):
        parse_index({"id": "m1"})
    assert [m.id for m in parse_index([{"id": "a"}, {"id": "b", "elements": []}])] == ["a", "b"]


def test_build_index_strips_elements_and_music():
    full = MapFull(id="m1", world_id="w1", name="Town", music_url="/m.mp3", elements=[
        InteractiveElement(id="e1", type=ElementType.ITEM),
    ])
    index = build_index([full])
    assert index == [{"id": "m1", "worldId": "w1", "name": "Town", "level": 0}]


def test_with_element_replaces_by_id_without_touching_the_original():
    full = MapFull(id="m1", elements=[InteractiveElement(id="e1", name="Old")])
    updated = full.with_element(InteractiveElement(id="e1", name="New"))
    assert [e.name for e in updated.elements] == ["New"]
    assert full.elements[0].name == "Old"

    appended = updated.with_element(InteractiveElement(id="e2"))
    assert [e.id for e in appended.elements] == ["e1", "e2"]
    assert [e.id for e in appended.without_element("e1").elements] == ["e2"]


def test_element_roles():
    assert InteractiveElement(id="p", type=ElementType.PORTAL, target_map_id="m2").is_portal
    assert not InteractiveElement(id="p", type=ElementType.PORTAL).is_portal
    assert InteractiveElement(id="n", type=ElementType.NPC).is_creature
    assert InteractiveElement(id="n", type=ElementType.ENEMY).is_creature
    assert not InteractiveElement(id="i", type=ElementType.LOOT).is_creature


def test_world_players():
    world = World.empty("w1")
    assert world.name == "w1"
    world.upsert_player(parse_world({"id": "w", "players": [{"id": "p1", "name": "A"}]}).players[0])
    assert world.get_player("p1").name == "A"
    assert world.remove_player("p1")
    assert not world.remove_player("p1")


@pytest.mark.parametrize("levels,expected", [
    ([1, 0, 0], 1),
    ([2, 1], 0),
    ([], None),
])
def test_pick_fallback_map(levels, expected):
    maps = [MapRef(id=str(i), level=level) for i, level in enumerate(levels)]
    picked = pick_fallback_map(maps)
    assert (picked.id if picked else None) == (str(expected) if expected is not None else None)


def test_fractional_combat_stats_survive_a_round_trip():
    full = parse_full_map({"id": "m1", "elements": [
        {"id": "e1", "type": "enemy", "x": 1, "y": 2, "hp_max": 10, "hp_bonus": 2.5, "ac": 12},
    ]})

    element = full.get_element("e1")
    assert element.hp_bonus == 2.5
    assert element.to_document()["hp_max"] == 10
    assert isinstance(element.to_document()["hp_max"], int)
    assert parse_full_map(full.to_document()).to_document() == full.to_document()
