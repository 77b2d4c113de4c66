"""Similarity ranking used when an exact listing search finds nothing.

Each criterion present in the filter set contributes a weighted score in
[0, 1]; the total is normalized by the sum of the weights of the criteria
present. Listings scoring above ``SIMILARITY_THRESHOLD`` are kept.
"""

import math
import re

SIMILARITY_THRESHOLD = 0.2

WEIGHTS = {
    'search': 1.0,
    'facilities': 1.2,
    'location': 0.8,
    'agegroup': 0.9,
    'price': 0.3,
    'main_category_ids': 0.6,
    'sub_category_ids': 0.5,
    'specific_item_ids': 0.4,
}

# Price scores below this are ignored
PRICE_CUTOFF = 0.7

FACILITY_COMPONENTS = {
    'gym': ['gym', 'fitness', 'workout', 'exercise', 'training'],
    'pool': ['pool', 'swimming', 'water', 'aquatic'],
    'court': ['court', 'tennis', 'basketball', 'badminton', 'volleyball'],
    'field': ['field', 'football', 'soccer', 'cricket', 'rugby'],
    'parking': ['parking', 'garage', 'valet'],
    'wifi': ['wifi', 'internet', 'broadband', 'connection'],
    'ac': ['ac', 'air conditioning', 'climate', 'cooling'],
    'playground': ['playground', 'play area', 'kids', 'children'],
    'garden': ['garden', 'park', 'outdoor', 'green space'],
    'restaurant': ['restaurant', 'cafe', 'dining', 'food', 'kitchen'],
    'spa': ['spa', 'massage', 'wellness', 'relaxation'],
}

SEMANTIC_SYNONYMS = {
    'gym': ['fitness', 'workout', 'exercise', 'training', 'health club'],
    'pool': ['swimming', 'water', 'aquatic center', 'swim'],
    'restaurant': ['dining', 'food', 'cafe', 'kitchen', 'eatery'],
    'parking': ['garage', 'valet', 'car park'],
    'spa': ['wellness', 'massage', 'relaxation', 'beauty'],
    'outdoor': ['garden', 'park', 'open air', 'terrace'],
    'kids': ['children', 'family', 'playground', 'child-friendly'],
}

PLUS_AGE_RE = re.compile(r'(\d+)\+\s*years?')
RANGE_AGE_RE = re.compile(r'(\d+)[-–](\d+)\s*years?')
SINGLE_AGE_RE = re.compile(r'(\d+)\s*years?')

PLUS_AGE_UPPER_BOUND = 100


def as_list(value) -> list:
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if v is not None and v != '']
    return [value]


def _number(value):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def has_price_criteria(filters: dict) -> bool:
    return any(_number(filters.get(k)) for k in ('min_price', 'max_price', 'price'))


def has_search_criteria(filters: dict) -> bool:
    """True when the filter set carries something worth scoring against."""
    if filters.get('search'):
        return True
    for key in ('facilities', 'location', 'agegroup', 'main_category_ids',
                'sub_category_ids', 'specific_item_ids'):
        if as_list(filters.get(key)):
            return True
    return has_price_criteria(filters)


def string_similarity(a: str, b: str) -> float:
    """Levenshtein similarity: 1 - distance / max(len)."""
    if a == b:
        return 1.0
    len_a, len_b = len(a), len(b)
    if max(len_a, len_b) == 0:
        return 1.0
    previous = list(range(len_a + 1))
    for j in range(1, len_b + 1):
        current = [j] + [0] * len_a
        for i in range(1, len_a + 1):
            if a[i - 1] == b[j - 1]:
                current[i] = previous[i - 1]
            else:
                current[i] = min(previous[i], current[i - 1], previous[i - 1]) + 1
        previous = current
    distance = previous[len_a]
    longest = max(len_a, len_b)
    return (longest - distance) / longest


def parse_age_range(value):
    """
    Parse an age label into ``(min, max, is_plus)``.

    Accepts "25+ years", "20-25 years" (hyphen or en dash) and "25 years".
    Returns None for anything else.
    """
    text = str(value).lower().strip()
    match = PLUS_AGE_RE.search(text)
    if match:
        return int(match.group(1)), PLUS_AGE_UPPER_BOUND, True
    match = RANGE_AGE_RE.search(text)
    if match:
        return int(match.group(1)), int(match.group(2)), False
    match = SINGLE_AGE_RE.search(text)
    if match:
        age = int(match.group(1))
        return age, age, False
    return None


def _age_pair_score(wanted, offered) -> float:
    w_min, w_max, w_plus = wanted
    o_min, o_max, o_plus = offered

    if w_plus and o_plus:
        return 1.0 if max(w_min, o_min) <= min(w_max, o_max) else 0.0

    if w_plus:
        if o_max < w_min:
            return 0.0
        overlap = min(o_max, w_max) - max(o_min, w_min) + 1
        return max(0, overlap) / (o_max - o_min + 1)

    if o_plus:
        if w_max < o_min:
            return 0.0
        overlap = min(w_max, o_max) - max(w_min, o_min) + 1
        return max(0, overlap) / (w_max - w_min + 1)

    start, end = max(w_min, o_min), min(w_max, o_max)
    if start > end:
        return 0.0
    return (end - start + 1) / (w_max - w_min + 1)


def age_group_similarity(filter_groups, listing_groups) -> float:
    """Best overlap between any requested and any offered age range."""
    wanted = [r for r in (parse_age_range(g) for g in as_list(filter_groups)) if r]
    offered = []
    for group in as_list(listing_groups):
        # Listing values may pack several ranges: "12-16 years, 30+ years"
        for part in str(group).split(','):
            parsed = parse_age_range(part.strip())
            if parsed:
                offered.append(parsed)
    if not wanted or not offered:
        return 0.0
    return max(_age_pair_score(w, o) for w in wanted for o in offered)


def price_similarity(filters: dict, listing_price) -> float:
    """
    1.0 inside the requested range, otherwise ``exp(-distance / tolerance)``
    with ``tolerance = max(range * 0.15, 50)``, dropped to 0 unless above 0.7.
    """
    if not listing_price:
        return 0.0
    min_price = _number(filters.get('min_price')) or 0
    max_price = _number(filters.get('max_price')) or math.inf
    exact = _number(filters.get('price'))

    if min_price <= listing_price <= max_price or (exact and listing_price == exact):
        return 1.0

    if listing_price < min_price:
        distance = min_price - listing_price
    elif listing_price > max_price:
        distance = listing_price - max_price
    elif exact:
        distance = abs(listing_price - exact)
    else:
        distance = 0

    range_size = min_price if max_price == math.inf else max_price - min_price
    if range_size <= 0:
        return 0.0
    tolerance = max(range_size * 0.15, 50)
    score = math.exp(-distance / tolerance)
    return score if score > PRICE_CUTOFF else 0.0


def category_similarity(filter_ids, listing_categories) -> float:
    """Jaccard similarity between requested ids and the listing's category ids."""
    listing_ids = {str(c['id']) for c in listing_categories or []}
    if not listing_ids:
        return 0.0
    wanted = {str(i) for i in as_list(filter_ids)}
    union = wanted | listing_ids
    return len(wanted & listing_ids) / len(union) if union else 0.0


def facility_components(facility: str) -> list:
    text = facility.lower()
    components = [key for key, terms in FACILITY_COMPONENTS.items() if any(t in text for t in terms)]
    if not components:
        components = [word for word in text.split() if len(word) > 2]
    return components


def match_facility_components(components, listing_facilities) -> float:
    offered = [
        part.strip().lower()
        for facility in as_list(listing_facilities)
        for part in str(facility).split(',')
    ]
    if not offered or not components:
        return 0.0

    score = 0.0
    for component in components:
        if any(component in f or f in component for f in offered):
            score += 1
            continue
        best = max(string_similarity(component, f) for f in offered)
        if best > 0.6:
            score += best
    return score / len(components)


def semantic_similarity(search_term: str, listing: dict) -> float:
    haystack = ' '.join([
        listing.get('name') or '',
        listing.get('description') or '',
        ' '.join(as_list(listing.get('facilities'))),
    ]).lower()
    score = 0.0
    for key, related in SEMANTIC_SYNONYMS.items():
        if key in search_term and any(term in haystack for term in related):
            score += 0.2
    return min(score, 0.3)


def location_similarity(filter_locations, listing_locations) -> float:
    best = 0.0
    for wanted in as_list(filter_locations):
        wanted = str(wanted).lower()
        for offered in as_list(listing_locations):
            offered = str(offered).lower()
            if wanted in offered or offered in wanted:
                return 1.0
            best = max(best, string_similarity(wanted, offered))
    return best


def similarity_score(listing: dict, filters: dict) -> float:
    """Weighted, normalized score of one listing against a filter set."""
    score = 0.0
    max_score = 0.0

    search = filters.get('search')
    if search:
        max_score += WEIGHTS['search']
        term = str(search).lower()
        if term in (listing.get('name') or '').lower():
            score += 0.4
        if term in (listing.get('description') or '').lower():
            score += 0.3
        score += semantic_similarity(term, listing)

    facilities = as_list(filters.get('facilities'))
    if facilities:
        max_score += WEIGHTS['facilities']
        total = sum(
            match_facility_components(facility_components(str(f)), listing.get('facilities'))
            for f in facilities
        )
        score += (total / len(facilities)) * WEIGHTS['facilities']

    locations = as_list(filters.get('location'))
    if locations:
        max_score += WEIGHTS['location']
        score += location_similarity(locations, listing.get('location')) * WEIGHTS['location']

    agegroups = as_list(filters.get('agegroup'))
    if agegroups:
        max_score += WEIGHTS['agegroup']
        score += age_group_similarity(agegroups, listing.get('agegroup')) * WEIGHTS['agegroup']

    if has_price_criteria(filters):
        max_score += WEIGHTS['price']
        score += price_similarity(filters, listing.get('price')) * WEIGHTS['price']

    for key, relation in (('main_category_ids', 'selected_main_categories'),
                          ('sub_category_ids', 'selected_sub_categories'),
                          ('specific_item_ids', 'selected_specific_items')):
        ids = as_list(filters.get(key))
        if ids:
            max_score += WEIGHTS[key]
            score += category_similarity(ids, listing.get(relation)) * WEIGHTS[key]

    return min(score / max_score, 1.0) if max_score > 0 else 0.0


def rank_by_similarity(listings, filters: dict, threshold: float = SIMILARITY_THRESHOLD):
    """
    Score every listing and return ``[(listing, score), ...]`` above the
    threshold, best first, ties broken by ascending id. An empty filter set
    returns an empty list without scoring anything.
    """
    if not has_search_criteria(filters):
        return []
    scored = [(listing, similarity_score(listing, filters)) for listing in listings]
    kept = [pair for pair in scored if pair[1] > threshold]
    kept.sort(key=lambda pair: (-pair[1], pair[0]['id']))
    return kept
