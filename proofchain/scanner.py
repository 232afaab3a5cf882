#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# scanner.py
#
# Rebuild badge records from an account's payment history.
#
# Badges have no storage of their own: each one is a marker payment on the
# ledger, and scanning the same history again gives the same records.
#
import asyncio, logging
from collections import namedtuple, Counter
from .constants import *
from .exceptions import LedgerNotFoundError
from .memo import decode, memo_text, is_certificate_memo, parse_memo_text, short_event_id
from .memo import MemoChunk
from .utils import is_marker_amount, as_known_events, match_known_event

logger = logging.getLogger(__name__)

BadgeRecord = namedtuple('BadgeRecord', [
    'id', 'event_id', 'event_title', 'recipient_address', 'issuer_address',
    'transaction_ref', 'date_issued', 'contract_ref',
    'image_url', 'title', 'description'])

# a payment we could not turn into a record, and why
SkipReason = namedtuple('SkipReason', 'transaction_hash reason')

class ScanReport:
    def __init__(self, address, badges=None, skipped=None, found=True):
        self.address = address
        self.badges = badges or []
        self.skipped = skipped or []
        # False when the account does not exist (yet) on the ledger
        self.found = found

    def __repr__(self):
        return '<ScanReport %s: %d badges, %d skipped>' % (
                    self.address, len(self.badges), len(self.skipped))


class BadgeScanner:

    def __init__(self, ledger, contract_ref=CONTRACT_REF, max_lookups=MAX_CONCURRENT_LOOKUPS):
        self.ledger = ledger
        self.contract_ref = contract_ref
        self.max_lookups = max_lookups

    async def _payments(self, address):
        # newest first, bounded window
        return await self.ledger.payments_for_account(address, order='desc', limit=SCAN_PAGE_LIMIT)

    async def _examine(self, payment):
        # Fetch details for one payment; None if it's not a badge.
        txn = await self.ledger.get_transaction(payment.transaction_hash)
        memo = memo_text(txn.memo, txn.memo_type)

        if not (is_marker_amount(payment.amount) or is_certificate_memo(memo)):
            return None

        event_id, event_name = parse_memo_text(memo)

        effects = await self.ledger.get_effects(payment.transaction_hash)
        chunks = [MemoChunk(e.name, e.value) for e in effects
                        if e.type in ('data_created', 'data_updated') and e.name]

        meta = decode(chunks, short_event_id(event_id) if event_id else None)

        event_id = event_id or meta.event_id or UNKNOWN_EVENT

        return BadgeRecord(
                id='badge_' + payment.transaction_hash,
                event_id=event_id,
                event_title=meta.event_name or event_name or DEFAULT_EVENT_TITLE,
                recipient_address=payment.destination or 'unknown',
                issuer_address=payment.source or '',
                transaction_ref=payment.transaction_hash,
                date_issued=payment.created_at,
                contract_ref=self.contract_ref,
                image_url=meta.image_url,
                title=meta.title,
                description=meta.description)

    async def _scan(self, address, want):
        try:
            payments = await self._payments(address)
        except LedgerNotFoundError:
            # unfunded account: same as having no badges
            logger.info("Account %s not found on ledger (not funded yet?)", address)
            return ScanReport(address, found=False)

        candidates = [p for p in payments if p.type == 'payment' and want(p)]
        limit = asyncio.Semaphore(self.max_lookups)

        async def one(p):
            async with limit:
                try:
                    return await self._examine(p)
                except Exception as exc:
                    logger.warning("Skipping payment in %s: %s", p.transaction_hash, exc)
                    return SkipReason(p.transaction_hash, f'{exc.__class__.__name__}: {exc}')

        # completes in any order, gather() keeps payment order (newest first)
        results = await asyncio.gather(*[one(p) for p in candidates])

        rv = ScanReport(address)
        for r in results:
            if isinstance(r, SkipReason):
                rv.skipped.append(r)
            elif r is not None:
                rv.badges.append(r)

        logger.debug("Scan of %s: %d payments, %d badges, %d skipped", address,
                        len(payments), len(rv.badges), len(rv.skipped))

        return rv

    async def scan_issued_report(self, issuer_address, known_events=None):
        rv = await self._scan(issuer_address, lambda p: p.source == issuer_address)

        if known_events is not None:
            events = as_known_events(known_events)
            rv.badges = [reconcile(b, events) for b in rv.badges]

        return rv

    async def scan_received_report(self, recipient_address):
        return await self._scan(recipient_address, lambda p: p.destination == recipient_address)

    async def scan_issued(self, issuer_address, known_events=None):
        return (await self.scan_issued_report(issuer_address, known_events)).badges

    async def scan_received(self, recipient_address):
        return (await self.scan_received_report(recipient_address)).badges

    async def count_by_event(self, issuer_address, known_events=None):
        badges = await self.scan_issued(issuer_address, known_events)
        return dict(Counter(b.event_id for b in badges))

    async def badges_for_event(self, issuer_address, event_id):
        # ledger may hold the full id or just its short form
        short = short_event_id(event_id)
        return [b for b in await self.scan_issued(issuer_address)
                    if b.event_id in (event_id, short)]

    async def verify_badge(self, tx_hash):
        try:
            txn = await self.ledger.get_transaction(tx_hash)
        except LedgerNotFoundError:
            return False

        return txn.successful


def reconcile(badge, known_events):
    # swap short event id for the catalog's full id
    ev = match_known_event(badge.event_id, known_events)
    if not ev:
        return badge

    changes = dict(event_id=ev.id)
    if ev.title and badge.event_title == DEFAULT_EVENT_TITLE:
        changes['event_title'] = ev.title

    return badge._replace(**changes)

# EOF
