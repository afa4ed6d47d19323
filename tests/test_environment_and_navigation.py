import math
import random

from forager_simulation.environment import AgentBody, Environment, Obstacle, Target
from forager_simulation.geometry import Vec3, planar_distance
from forager_simulation.navigation import Navigator
from forager_simulation.sensors.vision import Vision


def test_raycast_returns_nearest_hit_and_ignores_the_caster():
    env = Environment(50, 50)
    near = Obstacle(Vec3(10.0, 0.0, 15.0), radius=1.0)
    far = Target(Vec3(10.0, 0.0, 25.0))
    env.add_object(near)
    env.add_object(far)
    env.add_body(AgentBody(1, Vec3(10.0, 0.0, 10.0)))

    hit = env.raycast(Vec3(10.0, 0.0, 10.0), Vec3(0.0, 0.0, 1.0), 30.0)

    assert hit is not None
    assert hit.entity is near
    assert hit.tag == "obstacle"
    assert math.isclose(hit.distance, 4.0)
    assert env.raycast(Vec3(10.0, 0.0, 10.0), Vec3(0.0, 0.0, -1.0), 30.0) is None


def test_overlap_sphere_finds_objects_and_bodies():
    env = Environment(50, 50)
    obstacle = Obstacle(Vec3(5.0, 0.0, 5.0), radius=1.0)
    env.add_object(obstacle)
    body = AgentBody(7, Vec3(7.5, 0.0, 5.0), owner="agent-7")
    env.add_body(body)

    found = env.overlap_sphere(Vec3(6.5, 0.0, 5.0), 1.0)

    assert obstacle in found
    assert body in found
    assert env.overlap_sphere(Vec3(30.0, 0.0, 30.0), 1.0) == []


def test_moved_body_is_found_at_its_new_position():
    env = Environment(100, 100)
    env.add_body(AgentBody(1, Vec3(5.0, 0.0, 5.0)))

    env.move_body(1, Vec3(80.0, 0.0, 80.0))

    assert env.overlap_sphere(Vec3(5.0, 0.0, 5.0), 1.0) == []
    assert [b.agent_id for b in env.overlap_sphere(Vec3(80.0, 0.0, 80.0), 1.0)] == [1]


def test_walkable_point_is_pushed_out_of_obstacles_and_into_bounds():
    env = Environment(20, 20)
    env.add_object(Obstacle(Vec3(10.0, 0.0, 10.0), radius=2.0))

    pushed = env.nearest_walkable_point(Vec3(10.5, 0.0, 10.0), 5.0)
    assert pushed is not None
    assert env.blocking_obstacle(pushed, 0.5) is None

    clamped = env.nearest_walkable_point(Vec3(-3.0, 0.0, 5.0), 5.0)
    assert clamped == Vec3(0.0, 0.0, 5.0)

    assert env.nearest_walkable_point(Vec3(-30.0, 0.0, 5.0), 5.0) is None


def test_populate_keeps_clearance_around_the_target():
    env = Environment(60, 60)
    target = Vec3(30.0, 0.0, 30.0)

    placed = env.populate(random.Random(4), num_obstacles=20, keep_clear=[target], clearance=3.0)

    assert placed == len(env.obstacles)
    for obstacle in env.obstacles:
        assert planar_distance(obstacle.position, target) >= obstacle.radius + 3.0


def test_navigator_walks_to_destination_and_clears_it():
    env = Environment(50, 50)
    nav = Navigator(env)
    nav.register(AgentBody(1, Vec3(0.0, 0.0, 0.0)), speed=2.0)

    nav.set_destination(1, Vec3(0.0, 0.0, 5.0))
    assert nav.has_pending_path(1)

    nav.advance(1.0)
    assert not nav.has_pending_path(1)
    assert math.isclose(nav.remaining_distance(1), 3.0)
    assert math.isclose(nav.heading(1), 0.0)

    for _ in range(5):
        nav.advance(1.0)
    assert not nav.has_path(1)
    assert nav.remaining_distance(1) == 0.0
    assert nav.position(1) == Vec3(0.0, 0.0, 5.0)


def test_navigator_slides_around_obstacles():
    env = Environment(50, 50)
    env.add_object(Obstacle(Vec3(10.0, 0.0, 13.0), radius=1.0))
    nav = Navigator(env)
    nav.register(AgentBody(1, Vec3(10.3, 0.0, 10.0)), speed=1.0)
    nav.set_destination(1, Vec3(10.3, 0.0, 20.0))

    for _ in range(30):
        nav.advance(0.5)

    assert nav.position(1).z > 14.0
    for _ in range(10):
        nav.advance(0.5)
    assert env.blocking_obstacle(nav.position(1), 0.5) is None


def test_vision_cone_and_line_of_sight():
    env = Environment(50, 50)
    blocker = Obstacle(Vec3(10.0, 0.0, 14.0), radius=1.0)
    env.add_object(blocker)
    vision = Vision(fov_deg=60.0, vision_range=10.0)
    origin = Vec3(10.0, 0.0, 10.0)

    assert vision.in_view(origin, 0.0, Vec3(12.0, 0.0, 18.0))
    assert not vision.in_view(origin, 0.0, Vec3(18.0, 0.0, 12.0))
    assert not vision.in_view(origin, math.pi, Vec3(10.0, 0.0, 18.0))
    assert not vision.line_of_sight(env, origin, Vec3(10.0, 0.0, 18.0), lambda e: e.tag == "target")
    assert vision.line_of_sight(env, origin, Vec3(20.0, 0.0, 10.0), lambda e: False)
