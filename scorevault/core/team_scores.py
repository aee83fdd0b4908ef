"""Team score aggregation for gymnastics meets.

A team score is built per apparatus: the top N individual scores for each
event of the discipline are summed, and the event totals are summed into
the team total. Which individual scores counted is reported alongside so
score sheets can highlight them.
"""

import re
from decimal import Decimal, ROUND_HALF_UP

from .models import WOMENS, CountingScore, TeamScoreResult


# Men's events in competitive order
MENS_EVENTS = ('floor', 'pommelHorse', 'rings', 'vault', 'parallelBars', 'highBar')
WOMENS_EVENTS = ('vault', 'bars', 'beam', 'floor')
ALL_EVENTS = ('vault', 'bars', 'beam', 'floor',
              'pommelHorse', 'rings', 'parallelBars', 'highBar')

EVENT_NAMES = {
    'vault': ('Vault', 'V'),
    'bars': ('Uneven Bars', 'UB'),
    'beam': ('Balance Beam', 'BB'),
    'floor': ('Floor Exercise', 'FX'),
    'pommelHorse': ('Pommel Horse', 'PH'),
    'rings': ('Rings', 'R'),
    'parallelBars': ('Parallel Bars', 'PB'),
    'highBar': ('High Bar', 'HB'),
    'allAround': ('All-Around', 'AA'),
}

XCEL_ORDER = {
    'Xcel Bronze': 11,
    'Xcel Silver': 12,
    'Xcel Gold': 13,
    'Xcel Platinum': 14,
    'Xcel Diamond': 15,
    'Xcel Sapphire': 16,
}
ELITE_ORDER = 100
UNKNOWN_LEVEL_ORDER = 999

# Women's levels where a state meet may count five scores instead of three
FIVE_COUNT_LEVELS = {'Level 1', 'Level 2', 'Level 3', 'Level 4', 'Level 5'}

_THOUSANDTH = Decimal('0.001')


def events_for_discipline(discipline: str) -> tuple:
    """Return the fixed event list for a discipline."""
    return WOMENS_EVENTS if discipline == WOMENS else MENS_EVENTS


def round_score(value) -> float:
    """Round to the nearest thousandth, halves away from zero."""
    return float(Decimal(str(value)).quantize(_THOUSANDTH, rounding=ROUND_HALF_UP))


def _decimal_sum(values) -> float:
    total = sum((Decimal(str(v)) for v in values), Decimal(0))
    return round_score(total)


def calculate_team_score(scores: list, discipline: str, roster: list | None = None,
                         top_count: int = 3) -> TeamScoreResult:
    """Calculate the team score for one set of individual scores.

    Args:
        scores: Score records, already filtered to one meet/level/discipline.
        discipline: 'Womens' or 'Mens'; selects the event list.
        roster: The gymnasts behind ``scores``. Accepted for callers that
            have it at hand; it is not used to filter or validate.
        top_count: Maximum number of scores counted per event (3, or 5 for
            lower levels at state meets). Zero or less counts nothing.

    Returns:
        TeamScoreResult with one total per event, the overall total, and
        the individual scores that counted.

    Equal scores keep their input order, so the same input always yields
    the same counting scores.
    """
    team_scores = {}
    counting_scores = []
    limit = max(top_count, 0)

    for event in events_for_discipline(discipline):
        event_scores = []
        for s in scores:
            value = s.scores.get(event)
            if value is not None and value > 0:
                event_scores.append((s.gymnast_id, value))

        top = sorted(event_scores, key=lambda es: es[1], reverse=True)[:limit]

        team_scores[event] = _decimal_sum(value for _, value in top)
        for gymnast_id, value in top:
            counting_scores.append(CountingScore(gymnast_id, event, value))

    total_score = _decimal_sum(team_scores.values())
    return TeamScoreResult(team_scores=team_scores, total_score=total_score,
                           counting_scores=counting_scores)


def is_counting_score(gymnast_id: str, event: str, counting_scores: list) -> bool:
    """Check whether a gymnast's score on an event counted toward the team."""
    return any(cs.gymnast_id == gymnast_id and cs.event == event
               for cs in counting_scores)


def get_event_display_name(event: str, abbreviated: bool = True) -> str:
    """'bars' -> 'UB' (abbreviated) or 'Uneven Bars'. Unknown keys pass through."""
    names = EVENT_NAMES.get(event)
    if names is None:
        return event
    full, short = names
    return short if abbreviated else full


def get_level_order(level: str) -> int:
    """Map a level string to a sort position.

    "Level N" -> N, Xcel Bronze..Sapphire -> 11..16, Elite -> 100,
    anything else -> 999 (sorts last).
    """
    match = re.match(r'^Level (\d+)', level)
    if match:
        return int(match.group(1))
    if level in XCEL_ORDER:
        return XCEL_ORDER[level]
    if level == 'Elite':
        return ELITE_ORDER
    return UNKNOWN_LEVEL_ORDER


def sort_level_discipline_combos(combos: list) -> list:
    """Sort level/discipline dicts by level, Women's before Men's within a level."""
    return sorted(combos, key=lambda c: (
        get_level_order(c['level']),
        0 if c['discipline'] == WOMENS else 1,
    ))


def format_team_score(score: float) -> str:
    return f'{score:.3f}'


def compute_all_around(scores: dict, discipline: str) -> float:
    """Sum the discipline's events for an all-around, missing events as 0."""
    return _decimal_sum(scores.get(event) or 0
                        for event in events_for_discipline(discipline))


def counting_count_options(level: str, discipline: str) -> tuple:
    """Counting counts a team may be scored with at this level."""
    if discipline == WOMENS and level in FIVE_COUNT_LEVELS:
        return (3, 5)
    return (3,)


def filter_team_scores(scores: list, gymnasts: list, meet_id: str,
                       level: str, discipline: str) -> list[tuple]:
    """Select the (gymnast, score) pairs that make up one team.

    A team is every score at ``meet_id`` recorded at ``level`` by a gymnast
    of ``discipline``. Pairs are ordered by all-around, highest first.
    """
    by_id = {g.id: g for g in gymnasts if g.discipline == discipline}
    pairs = [(by_id[s.gymnast_id], s) for s in scores
             if s.meet_id == meet_id and s.level == level and s.gymnast_id in by_id]
    pairs.sort(key=lambda p: p[1].scores.get('allAround') or 0, reverse=True)
    return pairs


def meet_team_totals(scores: list, gymnasts: list, meets: list, level: str,
                     discipline: str, top_count: int = 3) -> list[dict]:
    """Team total at every meet where the level/discipline competed.

    Returns dicts with ``meet``, ``team_score`` and ``gymnast_count``,
    newest meet first. Scores for unknown meets are ignored.
    """
    gymnast_ids = {g.id for g in gymnasts if g.discipline == discipline}
    meets_by_id = {m.id: m for m in meets}

    by_meet: dict[str, list] = {}
    for s in scores:
        if s.level == level and s.gymnast_id in gymnast_ids:
            by_meet.setdefault(s.meet_id, []).append(s)

    totals = []
    for meet_id, meet_scores in by_meet.items():
        meet = meets_by_id.get(meet_id)
        if meet is None:
            continue
        result = calculate_team_score(meet_scores, discipline, gymnasts, top_count)
        totals.append({
            'meet': meet,
            'team_score': result.total_score,
            'gymnast_count': len({s.gymnast_id for s in meet_scores}),
        })

    totals.sort(key=lambda t: t['meet'].date, reverse=True)
    return totals


def level_discipline_combos(scores: list, gymnasts: list, meets: list,
                            season: str) -> list[dict]:
    """Level/discipline teams that competed in a season.

    Each dict has ``level``, ``discipline``, ``gymnast_count`` and
    ``meet_count``; the list is in display order.
    """
    season_meet_ids = {m.id for m in meets if m.season == season}
    gymnasts_by_id = {g.id: g for g in gymnasts}

    combos: dict[tuple, dict] = {}
    for s in scores:
        if s.meet_id not in season_meet_ids or not s.level:
            continue
        gymnast = gymnasts_by_id.get(s.gymnast_id)
        if gymnast is None:
            continue
        key = (s.level, gymnast.discipline)
        if key not in combos:
            combos[key] = {'level': s.level, 'discipline': gymnast.discipline,
                           'gymnast_ids': set(), 'meet_ids': set()}
        combos[key]['gymnast_ids'].add(s.gymnast_id)
        combos[key]['meet_ids'].add(s.meet_id)

    rows = [{
        'level': c['level'],
        'discipline': c['discipline'],
        'gymnast_count': len(c['gymnast_ids']),
        'meet_count': len(c['meet_ids']),
    } for c in combos.values()]
    return sort_level_discipline_combos(rows)
