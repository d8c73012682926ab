# This file is part of DistRec.
# Copyright (C) 2018-2023 Boise State University.
# Copyright (C) 2023-2026 Drexel University.
# Licensed under the MIT license, see LICENSE.md for details.
# SPDX-License-Identifier: MIT

"""
Names of the job parameters and counters shared by the pipeline stages.
"""

from typing import Any

SIMILARITY = "distrec.similarity"
THRESHOLD = "distrec.threshold"
N_COLUMNS = "distrec.rowsim.columns"
STATS_INPUT = "distrec.rowsim.stats"
MAX_SIMILARITIES = "distrec.rowsim.max_similarities"
EXCLUDE_SELF = "distrec.rowsim.exclude_self"

ITEM_BASED = "distrec.item_based"
BOOLEAN_DATA = "distrec.boolean_data"
SEED = "distrec.seed"
MIN_PREFS = "distrec.prepare.min_prefs"
MAX_PREFS = "distrec.prepare.max_prefs"
MAX_PREFS_CONSIDERED = "distrec.multiply.max_prefs_considered"

NUM_RECOMMENDATIONS = "distrec.recommend.n"
ALLOWED_ITEMS = "distrec.recommend.allowed_items"
ITEM_INDEX = "distrec.recommend.item_index"

ROWS = "ROWS"
"Counter of rows normalized by the row similarity job."
USERS = "USERS"
"Counter of user vectors kept by the preparation phase."
PRUNED = "PRUNED_PAIRS"
"Counter of row pairs skipped because they cannot reach the threshold."
SAMPLED = "SAMPLED_USERS"
"Counter of user vectors sampled down to a preference limit."


def as_bool(value: Any) -> bool:
    """
    Parse a boolean job parameter, accepting the strings ``true`` and
    ``false`` as well as actual booleans.
    """
    if isinstance(value, bool):
        return value
    elif isinstance(value, str):
        match value.strip().lower():
            case "true" | "yes" | "1":
                return True
            case "false" | "no" | "0":
                return False
    raise ValueError(f"invalid boolean {value!r}")
