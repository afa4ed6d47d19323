import json

from forager_simulation.geometry import Vec3
from forager_simulation.persistence import FilePersistence, InMemoryPersistence
from forager_simulation.qtable import LearningStore, QTable


def test_table_round_trip_preserves_every_entry(tmp_path):
    store = FilePersistence(tmp_path)
    table = {(0, 1): 0.5, (2, 3): -1.2}

    store.save_table("trained_model", table)

    assert store.load_table("trained_model") == table
    document = json.loads((tmp_path / "trained_model.json").read_text(encoding="utf-8"))
    assert document["entries"][0] == {"state": 0, "action": 1, "value": 0.5}


def test_cold_start_yields_empty_collections(tmp_path):
    store = LearningStore(FilePersistence(tmp_path / "missing"))
    store.load()

    assert len(store.q_table) == 0
    assert store.knowledge.food_locations == []
    assert store.knowledge.no_resource_areas == []
    assert store.knowledge.best_food_location() is None


def test_malformed_table_records_are_skipped_individually(tmp_path):
    records = [
        {"state": 1, "action": 2, "value": 0.25},
        {"state": "x", "action": 2, "value": 1.0},
        {"state": 1, "action": 3},
        "not a record",
        {"state": 1, "action": 2, "value": 9.0},  # duplicate, first one wins
        {"stateKey": 4, "actionKey": 0, "value": -0.5},
    ]
    (tmp_path / "trained_model.json").write_text(json.dumps(records), encoding="utf-8")

    table = FilePersistence(tmp_path).load_table("trained_model")

    assert table == {(1, 2): 0.25, (4, 0): -0.5}


def test_unparsable_table_document_starts_empty(tmp_path, caplog):
    (tmp_path / "trained_model.json").write_text("{not json", encoding="utf-8")

    with caplog.at_level("WARNING"):
        table = FilePersistence(tmp_path).load_table("trained_model")

    assert table == {}
    assert any("Unreadable" in r.message for r in caplog.records)


def test_point_lists_skip_malformed_lines(tmp_path):
    (tmp_path / "NoFoodAreas.txt").write_text(
        "1.0,0.0,2.0\nbroken line\n3,4\n5.5,0.0,-1.5\nnan,0,0\n",
        encoding="utf-8",
    )

    points = FilePersistence(tmp_path).load_points("NoFoodAreas")

    assert points == [Vec3(1.0, 0.0, 2.0), Vec3(5.5, 0.0, -1.5)]


def test_point_list_round_trip_leaves_no_temporary_files(tmp_path):
    store = FilePersistence(tmp_path)
    points = [Vec3(0.1, 0.0, 0.2), Vec3(-3.0, 0.0, 7.25)]

    store.save_points("KnowledgeBase", points)

    assert store.load_points("KnowledgeBase") == points
    assert sorted(p.name for p in tmp_path.iterdir()) == ["KnowledgeBase.txt"]


def test_evaluation_mode_never_writes_the_model():
    backend = InMemoryPersistence()
    backend.save_table("trained_model", {(0, 0): 1.0})
    store = LearningStore(backend, training_mode=False)
    store.load()

    store.q_table.set(0, 0, 5.0)
    assert store.save_model() is False
    store.shutdown()

    assert backend.load_table("trained_model") == {(0, 0): 1.0}


def test_training_mode_saves_on_shutdown():
    backend = InMemoryPersistence()
    store = LearningStore(backend, training_mode=True)
    store.load()
    store.q_table.set(3, 1, 0.75)

    store.shutdown()

    assert backend.load_table("trained_model") == {(3, 1): 0.75}


def test_qtable_reads_materialise_default_entries():
    table = QTable()

    assert table.get(7, 2) == 0.0
    assert (7, 2) in table
    assert table.snapshot() == {(7, 2): 0.0}
