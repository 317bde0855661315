from .tables import (
    HeuristicTables,
    all_matches,
    first_match,
    get_heuristic_tables,
    load_heuristic_tables,
    matches_any,
)

__all__ = [
    "HeuristicTables",
    "all_matches",
    "first_match",
    "get_heuristic_tables",
    "load_heuristic_tables",
    "matches_any",
]
