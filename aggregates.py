"""
Bootcamp aggregate fields kept in step with their children.

Course and review writes call ``run_post_commit`` once the write succeeded;
the hook registered for the collection recomputes the parent bootcamp's
field from the full set of remaining children. Concurrent writers are not
serialized here: the last recomputation to land wins.
"""

import math
from typing import Callable, Dict, Optional

from pymongo.database import Database

from database import to_obj_id
from logging_config import get_logger

logger = get_logger(__name__)


def _average(database: Database, collection_name: str, bootcamp_id: str, field: str) -> Optional[float]:
    result = list(database[collection_name].aggregate([
        {"$match": {"bootcamp": bootcamp_id}},
        {"$group": {"_id": "$bootcamp", "avg": {"$avg": f"${field}"}}},
    ]))
    if not result or result[0]["avg"] is None:
        return None
    return result[0]["avg"]


def recompute_average_cost(database: Database, bootcamp_id: str) -> Optional[float]:
    avg = _average(database, "course", bootcamp_id, "tuition")
    # Rounded up to the next ten
    average_cost = math.ceil(avg / 10) * 10 if avg is not None else None
    database["bootcamp"].update_one({"_id": to_obj_id(bootcamp_id)}, {"$set": {"average_cost": average_cost}})
    logger.debug("Bootcamp %s average_cost -> %s", bootcamp_id, average_cost)
    return average_cost


def recompute_average_rating(database: Database, bootcamp_id: str) -> Optional[float]:
    average_rating = _average(database, "review", bootcamp_id, "rating")
    database["bootcamp"].update_one({"_id": to_obj_id(bootcamp_id)}, {"$set": {"average_rating": average_rating}})
    logger.debug("Bootcamp %s average_rating -> %s", bootcamp_id, average_rating)
    return average_rating


POST_COMMIT_HOOKS: Dict[str, Callable[[Database, str], Optional[float]]] = {
    "course": recompute_average_cost,
    "review": recompute_average_rating,
}


def run_post_commit(database: Database, collection_name: str, bootcamp_id: str) -> None:
    hook = POST_COMMIT_HOOKS.get(collection_name)
    if hook is not None:
        hook(database, bootcamp_id)
