"""Activity-buddy matching.

Availability is passed around as ``{day: [(start, end), ...]}`` with "HH:MM" strings,
which is what ``ActivityPreference.availability_map()`` produces.
"""
import math
import re

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

TIME_WEIGHT = 0.5
EQUIPMENT_WEIGHT = 0.2
TRANSPORT_WEIGHT = 0.2
SKILL_WEIGHT = 0.1

# Ten shared hours a week saturates the time component
FULL_OVERLAP_MINUTES = 600

EQUIPMENT_PAIRS = {
    ("have", "need"),
    ("need", "have"),
    ("can_share", "need"),
    ("not_needed", "not_needed"),
}

TRANSPORT_PAIRS = {
    ("have_car", "need_ride"),
    ("need_ride", "have_car"),
    ("can_drive", "need_ride"),
    ("public_transit", "public_transit"),
    ("walking_distance", "walking_distance"),
}

SKILL_ORDER = ["beginner", "intermediate", "advanced"]


def is_valid_time(value):
    return isinstance(value, str) and bool(TIME_PATTERN.match(value))


def to_minutes(value):
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total):
    return f"{total // 60:02d}:{total % 60:02d}"


def slots_overlap(a, b):
    """Slots are (start, end) pairs; touching endpoints do not overlap."""
    return to_minutes(a[0]) < to_minutes(b[1]) and to_minutes(a[1]) > to_minutes(b[0])


def overlap(a, b):
    """Return the shared (start, end) of two slots, or None."""
    if not slots_overlap(a, b):
        return None
    start = max(to_minutes(a[0]), to_minutes(b[0]))
    end = min(to_minutes(a[1]), to_minutes(b[1]))
    return from_minutes(start), from_minutes(end)


def common_availability(mine, theirs):
    """Pairwise overlaps on every day both users list.

    Returns (common, total_minutes) where common is ``{day: [(start, end), ...]}``.
    """
    common = {}
    total_minutes = 0
    for day, my_slots in mine.items():
        their_slots = theirs.get(day)
        if not their_slots:
            continue
        for a in my_slots:
            for b in their_slots:
                shared = overlap(a, b)
                if shared is None:
                    continue
                common.setdefault(day, []).append(shared)
                total_minutes += to_minutes(shared[1]) - to_minutes(shared[0])
    return common, total_minutes


def equipment_score(mine, theirs):
    return 1.0 if (mine, theirs) in EQUIPMENT_PAIRS else 0.5


def transport_score(mine, theirs):
    return 1.0 if (mine, theirs) in TRANSPORT_PAIRS else 0.5


def skill_score(mine, theirs):
    if mine == theirs:
        return 1.0
    try:
        distance = abs(SKILL_ORDER.index(mine) - SKILL_ORDER.index(theirs))
    except ValueError:
        return 0.4
    return 0.7 if distance == 1 else 0.4


def time_score(overlap_minutes):
    return min(1.0, overlap_minutes / FULL_OVERLAP_MINUTES)


def match_score(overlap_minutes, equipment, transport, skill):
    """Weighted score in [0, 100]; halves round up."""
    return math.floor((
        TIME_WEIGHT * time_score(overlap_minutes)
        + EQUIPMENT_WEIGHT * equipment
        + TRANSPORT_WEIGHT * transport
        + SKILL_WEIGHT * skill
    ) * 100 + 0.5)


def score_candidate(mine, theirs):
    """Score two preference snapshots.

    Each snapshot is a dict with ``availability``, ``equipment``, ``transportation``
    and ``skill_level`` (enum values as strings). Returns None when the two have no
    overlapping availability.
    """
    common, minutes = common_availability(mine["availability"], theirs["availability"])
    if not common:
        return None
    return {
        "match_score": match_score(
            minutes,
            equipment_score(mine["equipment"], theirs["equipment"]),
            transport_score(mine["transportation"], theirs["transportation"]),
            skill_score(mine["skill_level"], theirs["skill_level"])
        ),
        "common_availability": common,
        "overlap_minutes": minutes
    }


def rank_candidates(mine, candidates):
    """Score (key, snapshot) candidates against mine, drop those without overlap, best first."""
    results = []
    for key, theirs in candidates:
        scored = score_candidate(mine, theirs)
        if scored is None:
            continue
        scored["key"] = key
        results.append(scored)
    results.sort(key=lambda r: r["match_score"], reverse=True)
    return results
