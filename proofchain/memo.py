#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# memo.py
#
# Certificate metadata <=> ledger memo / data entries.
#
# Wire shapes (must stay readable for badges already on the ledger):
#
#   text memo:     CERT:<short-id>                   (<= 28 bytes)
#   data entry:    cert_meta_<short-id>              single chunk
#                  cert_meta_<short-id>_<n>          chunk n of many, n from 0
#
# Data entry values are base64 on the wire (Horizon effects), raw bytes
# when building operations. Values are slices of one compact JSON object.
#
# Data entries may be missing or cut short, so decoding is best-effort
# and never raises.
#
import re, json, base64, binascii, logging
from collections import namedtuple
from .constants import *
from .exceptions import DecodeError

logger = logging.getLogger(__name__)

# one data entry: key is the entry name, value is base64 text
MemoChunk = namedtuple('MemoChunk', 'key value')

# parsed entry name; chunk_index is None for the single-chunk shape
ChunkKey = namedtuple('ChunkKey', 'base chunk_index')

# (python attribute, JSON key on the wire)
WIRE_FIELDS = [
    ('event_id', 'eventId'),
    ('event_name', 'eventName'),
    ('title', 'title'),
    ('description', 'description'),
    ('image_url', 'imageUrl'),
]

class CertificateMetadata(namedtuple('CertificateMetadata',
                            'event_id event_name title description image_url',
                            defaults=(None, None, None, None))):
    # Each field is independently optional when decoded, but issuance
    # always provides event_id.
    __slots__ = ()

    def to_wire(self):
        return {wire: getattr(self, attr) for attr, wire in WIRE_FIELDS
                    if getattr(self, attr) is not None}

    @classmethod
    def from_wire(cls, d, default_event_id=None):
        vals = {}
        for attr, wire in WIRE_FIELDS:
            v = d.get(wire)
            if v is None or isinstance(v, (dict, list)):
                continue
            vals[attr] = v if isinstance(v, str) else str(v)

        if not vals.get('event_id'):
            vals['event_id'] = default_event_id

        return cls(**vals)

    @classmethod
    def from_extra(cls, event_id, event_name=None, extra=None):
        # build from caller-supplied mapping; accepts wire or python names
        extra = dict(extra or {})
        return cls(event_id=event_id, event_name=event_name,
                    title=extra.get('title'),
                    description=extra.get('description'),
                    image_url=extra.get('image_url', extra.get('imageUrl')))


def short_event_id(event_id):
    # lossy on purpose; full ids come back from the event catalog
    return str(event_id)[0:SHORT_ID_LEN]

def compact_memo(event_id):
    rv = COMPACT_MEMO_PREFIX + short_event_id(event_id)
    if len(rv.encode('utf-8')) > MEMO_TEXT_LIMIT:
        raise ValueError("Event id too long for text memo")
    return rv

def chunk_key(short_id, index=None):
    if index is None:
        return CHUNK_KEY_PREFIX + short_id
    return f'{CHUNK_KEY_PREFIX}{short_id}_{index}'

_INDEXED_KEY = re.compile(r'^(.+)_([0-9]+)$')

def indexed_bases(keys):
    # Bases that appear with two or more different _<digits> suffixes.
    # Those are chunk sets, even when the short id is under 8 chars.
    seen = {}
    for key in keys:
        if not key or not key.startswith(CHUNK_KEY_PREFIX):
            continue
        m = _INDEXED_KEY.match(key[len(CHUNK_KEY_PREFIX):])
        if m:
            seen.setdefault(m.group(1), set()).add(int(m.group(2)))

    return {base for base, idx in seen.items() if len(idx) > 1}

def parse_chunk_key(key, short_id=None, indexed=()):
    # Split data entry name into (base, index). Returns None if not ours.
    # - with short_id known, parse is exact even if ids contain '_'
    # - without, a _<digits> suffix is an index when the name is too long
    #   to be a single-entry key, or when its base is in indexed
    if not key or not key.startswith(CHUNK_KEY_PREFIX):
        return None

    rest = key[len(CHUNK_KEY_PREFIX):]
    if not rest:
        return None

    if short_id is not None:
        if rest == short_id:
            return ChunkKey(short_id, None)
        if rest.startswith(short_id + '_'):
            idx = rest[len(short_id)+1:]
            if re.fullmatch(r'[0-9]+', idx):
                return ChunkKey(short_id, int(idx))
        return None

    # short ids are never longer than SHORT_ID_LEN
    m = _INDEXED_KEY.match(rest)
    if m and (len(rest) > SHORT_ID_LEN or m.group(1) in indexed):
        return ChunkKey(m.group(1), int(m.group(2)))

    return ChunkKey(rest, None)

def serialize(metadata):
    return json.dumps(metadata.to_wire(), separators=(',', ':')).encode('utf-8')

def encode(metadata, max_chunk_bytes=DATA_VALUE_LIMIT):
    # Metadata into one or more data entries, each value <= max_chunk_bytes.
    if not metadata.event_id:
        raise ValueError("event_id is required")
    if max_chunk_bytes < 1:
        raise ValueError("max_chunk_bytes must be positive")

    short_id = short_event_id(metadata.event_id)
    raw = serialize(metadata)
    b64 = lambda b: base64.b64encode(b).decode('ascii')

    if len(raw) <= max_chunk_bytes:
        return [MemoChunk(chunk_key(short_id), b64(raw))]

    return [MemoChunk(chunk_key(short_id, n), b64(raw[pos:pos+max_chunk_bytes]))
                for n, pos in enumerate(range(0, len(raw), max_chunk_bytes))]

def decode(chunks, short_id=None):
    # Reassemble metadata from data entries, in any order, maybe incomplete.
    # - picks the group for short_id, else the first group seen
    # - never raises; fields we can't recover are None
    chunks = list(chunks)
    singles = {}
    parts = {}
    order = []

    indexed = () if short_id is not None else indexed_bases(k for k, _ in chunks)

    for key, value in chunks:
        ck = parse_chunk_key(key, short_id, indexed)
        if ck is None:
            continue

        # entry name alone still tells us the event
        if ck.base not in order:
            order.append(ck.base)

        try:
            raw = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError, TypeError):
            logger.debug("Skipping undecodable data entry: %s", key)
            continue

        if ck.chunk_index is None:
            singles[ck.base] = raw
        else:
            parts.setdefault(ck.base, {})[ck.chunk_index] = raw

    if not order:
        return CertificateMetadata(short_id)

    base = short_id if short_id in order else order[0]

    if base in singles:
        payload = singles[base]
    else:
        here = parts.get(base, {})
        payload = b''.join(here[n] for n in sorted(here))

    return parse_payload(payload, base)

def parse_payload(payload, default_event_id=None):
    # strict JSON, then repaired JSON, then field-by-field regex
    if isinstance(payload, bytes):
        payload = payload.decode('utf-8', errors='replace')

    try:
        return CertificateMetadata.from_wire(_loads_object(payload), default_event_id)
    except DecodeError:
        pass

    try:
        fixed = repair_truncated_json(payload)
        rv = CertificateMetadata.from_wire(_loads_object(fixed), default_event_id)
        logger.debug("Repaired truncated metadata: %r", fixed)
        return rv
    except DecodeError:
        pass

    logger.debug("Falling back to field extraction: %r", payload)
    return extract_fields(payload, default_event_id)

def _loads_object(text):
    try:
        rv = json.loads(text)
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc

    if not isinstance(rv, dict):
        raise DecodeError("Expected a JSON object")

    return rv

def repair_truncated_json(text):
    # Close what a truncation left open: a string, then any objects.
    # - raises DecodeError if nothing looks unbalanced
    text = text.strip()
    depth = 0
    in_str = escaped = False

    for ch in text:
        if in_str:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_str = False
        elif ch == '"':
            in_str = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1

    if depth <= 0 and not in_str:
        raise DecodeError("Not truncated JSON")

    if in_str:
        if escaped:
            text = text[:-1]
        text += '"'
    else:
        text = text.rstrip(', \t\r\n')

    return text + ('}' * max(depth, 0))

def _field_regex(wire, allow_unterminated=False):
    tail = r'(?:"|\\?\Z)' if allow_unterminated else '"'
    return re.compile(r'"%s"\s*:\s*"((?:[^"\\]|\\.)*)%s' % (wire, tail))

# image urls are long and usually the field that gets cut off
FIELD_PATTERNS = [
    ('event_id', _field_regex('eventId')),
    ('event_name', _field_regex('eventName')),
    ('title', _field_regex('title')),
    ('description', _field_regex('description')),
    ('image_url', _field_regex('imageUrl', allow_unterminated=True)),
]

def _unescape(val):
    try:
        return json.loads('"%s"' % val)
    except ValueError:
        return val

def extract_fields(text, default_event_id=None):
    # last resort: each field on its own, missing ones left as None
    vals = {}
    for attr, pat in FIELD_PATTERNS:
        m = pat.search(text)
        if m:
            vals[attr] = _unescape(m.group(1))

    if not vals.get('event_id'):
        vals['event_id'] = default_event_id

    return CertificateMetadata(**vals)

#
# Transaction memo field: compact form, or older JSON forms.
#

def memo_text(memo, memo_type):
    # Horizon memo fields into text; hash/return memos are base64
    if not memo or not memo_type:
        return ''
    if memo_type == 'text':
        return memo
    if memo_type in ('hash', 'return'):
        try:
            return base64.b64decode(memo).decode('utf-8', errors='replace')
        except (binascii.Error, ValueError):
            return ''

    # 'id' memos are plain numbers
    return ''

def is_certificate_memo(text):
    # secondary marker signal, for badges from older issuing code
    if not text:
        return False
    return (CERTIFICATE_MARKER in text) or text.startswith(COMPACT_MEMO_PREFIX)

_LEGACY_PATTERNS = [
    ('event_id', re.compile(r'"event_id"\s*:\s*"([^"]+)"')),
    ('event_name', re.compile(r'"event_name"\s*:\s*"([^"]+)"')),
    ('event', re.compile(r'"event"\s*:\s*"([^"]+)"')),
]

def parse_memo_text(text):
    # Get (event_id, event_name) from a memo; either may be None.
    if not text:
        return None, None

    if text.startswith(COMPACT_MEMO_PREFIX):
        eid = text[len(COMPACT_MEMO_PREFIX):].strip()
        return (eid or None), None

    if '{' not in text:
        return None, None

    found = {}
    try:
        d = _loads_object(text[text.index('{'):])
        found = {k: str(d[k]) for k, _ in _LEGACY_PATTERNS if d.get(k)}
    except DecodeError:
        # memo limit cuts these off; take what's there
        for k, pat in _LEGACY_PATTERNS:
            m = pat.search(text)
            if m:
                found[k] = m.group(1)

    return found.get('event_id') or found.get('event'), found.get('event_name')

# EOF
