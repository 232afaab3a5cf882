# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
from decimal import Decimal, InvalidOperation
from collections import namedtuple
from stellar_sdk import StrKey
from .constants import *

# entry of the out-of-band event catalog
KnownEvent = namedtuple('KnownEvent', 'id title')

def is_address(value):
    # is this a Stellar public account id (G...), as opposed to a name?
    return isinstance(value, str) and StrKey.is_valid_ed25519_public_key(value)

def to_decimal(amount):
    # Horizon gives amounts as strings with 7 decimals; compare as numbers
    try:
        return Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        return None

def is_marker_amount(amount):
    return to_decimal(amount) == Decimal(MARKER_AMOUNT)

def short_addr(addr, n=6):
    # for display: first and last few chars
    if not addr or len(addr) <= 2*n:
        return addr or ''
    return addr[0:n] + '...' + addr[-n:]

def as_known_events(events):
    # accept dicts (from JSON / the web app) or KnownEvent tuples
    rv = []
    for ev in events or []:
        if isinstance(ev, dict):
            if not ev.get('id'):
                continue
            rv.append(KnownEvent(str(ev['id']), ev.get('title')))
        else:
            rv.append(KnownEvent(*ev))
    return rv

def match_known_event(event_id, known_events):
    # Recover full event id from a (maybe) shortened one.
    # - exact match, or catalog id starts with what the ledger gave us
    if not event_id or event_id == UNKNOWN_EVENT:
        return None

    for ev in known_events:
        if ev.id == event_id or ev.id.startswith(event_id):
            return ev

    return None

# EOF
