"""
Great-circle distance and a waypoint shortest-path search.

Used by the route advisor when the road-routing service is unavailable.
"""

import heapq
import math

EARTH_RADIUS_KM = 6371.0

Point = tuple[float, float]  # (lat, lng)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate great-circle distance between two points in kilometers.
    Uses the Haversine formula.
    """
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def path_length_km(path: list[Point]) -> float:
    """Sum of haversine segment lengths along a polyline."""
    return sum(
        haversine_km(a[0], a[1], b[0], b[1])
        for a, b in zip(path, path[1:])
    )


def interpolate_waypoints(start: Point, end: Point, count: int) -> list[Point]:
    """Return ``count`` evenly spaced points strictly between start and end."""
    lat_step = (end[0] - start[0]) / (count + 1)
    lng_step = (end[1] - start[1]) / (count + 1)
    return [
        (start[0] + lat_step * i, start[1] + lng_step * i)
        for i in range(1, count + 1)
    ]


def build_waypoint_graph(
    nodes: list[Point],
    connect_km: float,
) -> dict[int, list[tuple[int, float]]]:
    """
    Adjacency list over node indexes weighted by haversine distance.

    Nodes within two index positions of each other, or closer than
    ``connect_km``, are joined. Consecutive nodes are always joined so the
    chain from first to last node is connected.
    """
    graph: dict[int, list[tuple[int, float]]] = {i: [] for i in range(len(nodes))}

    for i, a in enumerate(nodes):
        for j, b in enumerate(nodes):
            if i == j:
                continue
            distance = haversine_km(a[0], a[1], b[0], b[1])
            if abs(i - j) <= 2 or distance < connect_km:
                graph[i].append((j, distance))

    for i in range(len(nodes) - 1):
        if not any(neighbor == i + 1 for neighbor, _ in graph[i]):
            a, b = nodes[i], nodes[i + 1]
            graph[i].append((i + 1, haversine_km(a[0], a[1], b[0], b[1])))

    return graph


def dijkstra(
    graph: dict[int, list[tuple[int, float]]],
    source: int,
    target: int,
) -> list[int] | None:
    """
    Shortest path from ``source`` to ``target`` as a list of node indexes.

    Returns None when ``target`` is unreachable.
    """
    distances = {node: math.inf for node in graph}
    previous: dict[int, int | None] = {node: None for node in graph}
    distances[source] = 0.0
    visited: set[int] = set()
    queue = [(0.0, source)]

    while queue:
        distance, current = heapq.heappop(queue)
        if current in visited:
            continue
        visited.add(current)
        if current == target:
            break

        for neighbor, weight in graph[current]:
            if neighbor in visited:
                continue
            candidate = distance + weight
            if candidate < distances[neighbor]:
                distances[neighbor] = candidate
                previous[neighbor] = current
                heapq.heappush(queue, (candidate, neighbor))

    if target not in visited:
        return None

    path = []
    node: int | None = target
    while node is not None:
        path.append(node)
        node = previous[node]
    path.reverse()
    return path
