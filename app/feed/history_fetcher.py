"""
Upstream History Feed - Fetches the round history from the upstream source
and normalizes each row into {'id', 'outcome', 'score'}.

Malformed rows are rejected here so the engine only ever sees complete
rounds.
"""

import requests

from config import UPSTREAM_URL, UPSTREAM_TIMEOUT, UPSTREAM_HEADERS, OUTCOME_ALIASES

# Upstream field variants, first present wins
ID_FIELDS = ('id', 'session', 'Phien', 'phien')
OUTCOME_FIELDS = ('outcome', 'result', 'Ket_qua', 'ket_qua')
SCORE_FIELDS = ('score', 'totalScore', 'Tong', 'tong')


class UpstreamError(Exception):
    """The upstream history source could not be reached or returned junk."""


class MalformedRoundError(ValueError):
    """A round is missing its id, outcome or score, or has an unknown outcome."""


def _first_present(raw, fields):
    for field in fields:
        value = raw.get(field)
        if value is not None and value != '':
            return value
    return None


def parse_outcome(label):
    """Map an upstream outcome label onto 'High' / 'Low' (None if unknown)."""
    if label is None:
        return None
    return OUTCOME_ALIASES.get(str(label).strip().lower())


def normalize_round(raw):
    """Convert one upstream row into a Round dict.

    Raises:
        MalformedRoundError: missing id/outcome/score or unknown outcome label
    """
    if not isinstance(raw, dict):
        raise MalformedRoundError(f'round is not an object: {raw!r}')

    round_id = _first_present(raw, ID_FIELDS)
    outcome = parse_outcome(_first_present(raw, OUTCOME_FIELDS))
    score = _first_present(raw, SCORE_FIELDS)

    if round_id is None:
        raise MalformedRoundError('round has no id')
    if outcome is None:
        raise MalformedRoundError(f'round {round_id} has no recognizable outcome')
    if score is None:
        raise MalformedRoundError(f'round {round_id} has no score')

    if isinstance(round_id, float) and not round_id.is_integer():
        raise MalformedRoundError(f'round id {round_id} is not a whole number')

    try:
        round_id = int(round_id)
        score = float(score)
    except (TypeError, ValueError) as e:
        raise MalformedRoundError(f'round {round_id} has a non-numeric field: {e}')

    return {'id': round_id, 'outcome': outcome, 'score': score}


def normalize_history(rows):
    """Normalize a list of upstream rows, skipping malformed ones.

    Returns:
        (history, skipped_count)
    """
    history = []
    skipped = 0
    for raw in rows:
        try:
            history.append(normalize_round(raw))
        except MalformedRoundError as e:
            skipped += 1
            print(f"[Feed] Skipping malformed round: {e}")
    return history, skipped


def extract_rows(payload):
    """Pull the list of rounds out of the common JSON envelopes."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get('data')
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get('list'), list):
            return data['list']
        if isinstance(payload.get('list'), list):
            return payload['list']
    raise UpstreamError('upstream response is not a list of rounds')


def fetch_history(url=UPSTREAM_URL, timeout=UPSTREAM_TIMEOUT, session=None):
    """GET the upstream history and return normalized rounds, oldest first.

    Raises:
        UpstreamError: network failure, non-2xx status or unusable body
    """
    http = session or requests
    try:
        response = http.get(url, headers=UPSTREAM_HEADERS, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        print(f"[Feed] Upstream fetch failed: {e}")
        raise UpstreamError(f'upstream fetch failed: {e}') from e
    except ValueError as e:
        print(f"[Feed] Upstream returned invalid JSON: {e}")
        raise UpstreamError('upstream returned invalid JSON') from e

    history, skipped = normalize_history(extract_rows(payload))
    if skipped:
        print(f"[Feed] Dropped {skipped} malformed rounds, kept {len(history)}")
    return history
