"""
Road Network Module – OSM road graph with flood-aware edge weights.

The engine never searches the graph itself.  It writes a cost per edge and
leaves the search to networkx / osmnx:

    G = load_road_network(lat, lon, 3000)
    apply_flood_edge_costs(G, engine, rain_multiplier=1.5)
    nx.shortest_path(G, source, target, weight="flood_cost")
"""

import time

import networkx as nx
import osmnx as ox

import config
from floodroute.route_risk import RouteRiskEngine

# Last downloaded AOI, keyed by (lat, lon, radius_m, network_type)
_cached_graph = None
_cached_key = None


def _graph_key(lat: float, lon: float, radius_m: float, network_type: str) -> tuple:
    return round(lat, 4), round(lon, 4), int(radius_m), network_type


def load_road_network(
    lat: float,
    lon: float,
    radius_m: float,
    force: bool = False,
    network_type: str = config.NETWORK_TYPE,
) -> nx.MultiDiGraph:
    """
    Fetch the road graph around (lat, lon) from OpenStreetMap.

    The last AOI is kept in memory.  Overpass failures are retried with
    exponential backoff; the final failure propagates.
    """
    global _cached_graph, _cached_key
    key = _graph_key(lat, lon, radius_m, network_type)

    if _cached_graph is not None and _cached_key == key and not force:
        print(f"[ROAD] Cache hit for {key} ({_cached_graph.number_of_nodes()} nodes)")
        return _cached_graph

    attempt = 0
    while True:
        attempt += 1
        try:
            G = ox.graph_from_point((lat, lon), dist=radius_m, network_type=network_type, simplify=True)
            break
        except Exception as e:
            if attempt >= config.ROAD_MAX_RETRIES:
                print(f"[ROAD] Giving up after {attempt} attempts: {e}")
                raise
            delay = 2 ** attempt
            print(f"[ROAD] Overpass request {attempt} failed ({e}), retry in {delay}s")
            time.sleep(delay)

    print(f"[ROAD] {network_type} graph: {G.number_of_nodes()} nodes, {G.number_of_edges()} edges")
    _cached_graph, _cached_key = G, key
    return G


def apply_flood_edge_costs(
    G: nx.MultiDiGraph,
    engine: RouteRiskEngine,
    rain_multiplier: float = 1.0,
    default_speed_kmh: float = config.DEFAULT_TRAFFIC_SPEED_KMH,
    weight: str = config.FLOOD_COST_WEIGHT,
) -> nx.MultiDiGraph:
    """
    Write a flood-aware travel-time cost (hours) on every edge.

    Nodes carry osmnx-style coordinates (y = lat, x = lon).  The edge
    `length` (metres) and `speed_kph` are used when present; the midpoint
    flood probability is kept as `flood_risk`.
    """
    warned = 0
    for u, v, data in G.edges(data=True):
        src, dst = G.nodes[u], G.nodes[v]
        assessment = engine.assess_edge(
            (src["y"], src["x"]),
            (dst["y"], dst["x"]),
            distance_m=data.get("length"),
            traffic_speed_kmh=data.get("speed_kph", default_speed_kmh),
            rain_multiplier=rain_multiplier,
        )
        data[weight] = assessment.cost_hours
        data["flood_risk"] = assessment.midpoint_risk.flood_probability
        warned += assessment.midpoint_risk.requires_warning

    print(
        f"[ROAD] '{weight}' set on {G.number_of_edges()} edges, "
        f"{warned} in warning zones (rain ×{rain_multiplier})"
    )
    return G
