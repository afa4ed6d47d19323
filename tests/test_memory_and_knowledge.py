from forager_simulation.geometry import Vec3
from forager_simulation.knowledge import KnowledgeBase, NoResourceAreaMap
from forager_simulation.memory import SpatialMemory


def test_memory_never_exceeds_capacity_and_evicts_oldest():
    memory = SpatialMemory(max_count=3, radius=1.0)
    points = [Vec3(float(i * 10), 0.0, 0.0) for i in range(5)]
    memory.extend(points)

    assert len(memory) == 3
    assert memory.points() == points[2:]
    assert not memory.is_visited(points[0])
    assert memory.is_visited(Vec3(40.5, 0.0, 0.0))


def test_memory_radius_is_strict():
    memory = SpatialMemory(max_count=2, radius=1.0)
    memory.remember(Vec3(0.0, 0.0, 0.0))

    assert memory.is_visited(Vec3(0.99, 0.0, 0.0))
    assert not memory.is_visited(Vec3(1.0, 0.0, 0.0))


def test_knowledge_base_rewrites_storage_on_every_mutation(memory_store):
    kb = KnowledgeBase(memory_store)
    kb.load()
    assert kb.best_food_location() is None

    kb.add_food_location(Vec3(1.0, 0.0, 1.0))
    kb.add_food_location(Vec3(5.0, 0.0, 5.0))
    assert kb.best_food_location() == Vec3(5.0, 0.0, 5.0)
    assert memory_store.load_points("KnowledgeBase") == [Vec3(1.0, 0.0, 1.0), Vec3(5.0, 0.0, 5.0)]

    removed = kb.remove_food_locations_near(Vec3(5.5, 0.0, 5.0), 1.0)
    assert removed == 1
    assert memory_store.load_points("KnowledgeBase") == [Vec3(1.0, 0.0, 1.0)]


def test_no_resource_membership_is_union_of_ephemeral_and_persisted(memory_store):
    kb = KnowledgeBase(memory_store)
    areas = NoResourceAreaMap(radius=5.0, knowledge=kb)

    persisted = Vec3(0.0, 0.0, 0.0)
    ephemeral = Vec3(20.0, 0.0, 0.0)
    kb.add_no_resource_area(persisted)
    areas.add(ephemeral)

    assert areas.is_in_no_resource_area(Vec3(4.9, 0.0, 0.0))
    assert areas.is_in_no_resource_area(Vec3(24.9, 0.0, 0.0))
    assert not areas.is_in_no_resource_area(Vec3(12.0, 0.0, 0.0))
    # The ephemeral entry never reaches storage unless asked to
    assert memory_store.load_points("NoFoodAreas") == [persisted]


def test_no_resource_purge_clears_both_lists_when_persisting(memory_store):
    kb = KnowledgeBase(memory_store)
    areas = NoResourceAreaMap(radius=5.0, knowledge=kb)
    target = Vec3(10.0, 0.0, 10.0)

    areas.add(Vec3(12.0, 0.0, 10.0), persist=True)
    areas.add(Vec3(30.0, 0.0, 30.0), persist=True)
    covered = [target, Vec3(16.9, 0.0, 10.0), Vec3(12.0, 0.0, 14.5), Vec3(8.0, 0.0, 10.0)]
    assert all(areas.is_in_no_resource_area(p) for p in covered)

    removed = areas.remove_near(target, persist=True)

    assert removed == 2  # one ephemeral, one persisted
    for point in covered:
        assert not areas.is_in_no_resource_area(point)
    assert areas.is_in_no_resource_area(Vec3(30.0, 0.0, 31.0))
    assert memory_store.load_points("NoFoodAreas") == [Vec3(30.0, 0.0, 30.0)]
