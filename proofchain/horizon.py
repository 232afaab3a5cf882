#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# horizon.py
#
# Talk to the ledger: Stellar Horizon REST API.
#
# - Requires 'requests' module
# - Calls are blocking; HorizonLedger runs them in worker threads for asyncio
# - API docs <https://developers.stellar.org/docs/data/horizon/api-reference>
#
import os, json, asyncio, threading
from pprint import pformat
from collections import namedtuple
from .constants import HORIZON_TESTNET_URL, FRIENDBOT_URL, SCAN_PAGE_LIMIT
from .exceptions import LedgerError, LedgerNotFoundError, SubmissionError

# Change this to see traffic details
VERBOSE = False

AccountInfo = namedtuple('AccountInfo', 'account_id sequence balances')
Payment = namedtuple('Payment', 'id type source destination amount asset_type transaction_hash created_at')
TxnInfo = namedtuple('TxnInfo', 'hash memo memo_type successful created_at')
Effect = namedtuple('Effect', 'type name value')


class HorizonConnection:

    def __init__(self, server=None, timeout=30):
        self._local = threading.local()
        self.server = (server or os.environ.get('HORIZON_URL') or HORIZON_TESTNET_URL).rstrip('/')
        self.timeout = timeout

    @property
    def ses(self):
        # requests.Session is not thread-safe: one per worker thread
        rv = getattr(self._local, 'ses', None)
        if rv is None:
            import requests
            rv = self._local.ses = requests.Session()
            rv.headers['accept'] = 'application/json'
        return rv

    def _check(self, r, path):
        if VERBOSE:
            print(f"<< {r.status_code} {path}")

        if r.status_code == 404:
            raise LedgerNotFoundError(f"Not found: {path}")

        try:
            body = r.json()
        except ValueError:
            raise LedgerError(f"Bad json from {path}: " + r.text[0:200], r.status_code)

        if VERBOSE:
            print(pformat(body))

        return body

    def get_json(self, path, **params):
        # fetch a JSON response
        assert path[0] == '/'
        if VERBOSE:
            print(f">> GET {path} {params or ''}")

        r = self.ses.get(self.server + path, params=params, timeout=self.timeout)
        body = self._check(r, path)
        if r.status_code >= 400:
            raise LedgerError(f"{r.status_code} on {path}: {body.get('title', '?')}", r.status_code)

        return body

    def post_transaction(self, envelope_xdr):
        # submit signed envelope; returns transaction hash
        path = '/transactions'
        if VERBOSE:
            print(f">> POST {path}")

        r = self.ses.post(self.server + path, data=dict(tx=envelope_xdr), timeout=self.timeout)
        body = self._check(r, path)

        if r.status_code >= 400:
            extras = body.get('extras') or {}
            codes = extras.get('result_codes') or {}
            msg = body.get('title') or 'Transaction rejected'
            if codes:
                msg += ': ' + json.dumps(codes)
            raise SubmissionError(msg, r.status_code, codes)

        return body['hash']


def _records(body):
    return body.get('_embedded', {}).get('records', [])

def parse_payment(rec):
    # only 'payment' ops have from/to/amount; create_account etc. differ
    return Payment(rec.get('id'), rec.get('type'),
                    rec.get('from', rec.get('funder')),
                    rec.get('to', rec.get('account')),
                    rec.get('amount', rec.get('starting_balance')),
                    rec.get('asset_type'),
                    rec.get('transaction_hash'), rec.get('created_at'))

def parse_transaction(rec):
    return TxnInfo(rec['hash'], rec.get('memo'), rec.get('memo_type'),
                    bool(rec.get('successful', False)), rec.get('created_at'))

def parse_effect(rec):
    return Effect(rec.get('type'), rec.get('name'), rec.get('value'))


class HorizonLedger:
    #
    # Query and submit API used by the scanner and issuer. All async.
    #
    def __init__(self, server=None, web=None):
        self.web = web or HorizonConnection(server)

    def __repr__(self):
        return '<%s %s>' % (self.__class__.__name__, self.web.server)

    async def _get(self, path, **params):
        return await asyncio.to_thread(self.web.get_json, path, **params)

    async def load_account(self, address):
        body = await self._get(f'/accounts/{address}')
        return AccountInfo(body['account_id'], int(body['sequence']), body.get('balances', []))

    async def payments_for_account(self, address, order='desc', limit=SCAN_PAGE_LIMIT):
        body = await self._get(f'/accounts/{address}/payments', order=order, limit=limit)
        return [parse_payment(r) for r in _records(body)]

    async def get_transaction(self, tx_hash):
        return parse_transaction(await self._get(f'/transactions/{tx_hash}'))

    async def get_effects(self, tx_hash):
        body = await self._get(f'/transactions/{tx_hash}/effects', limit=SCAN_PAGE_LIMIT)
        return [parse_effect(r) for r in _records(body)]

    async def submit(self, envelope_xdr):
        return await asyncio.to_thread(self.web.post_transaction, envelope_xdr)


def friendbot_fund(address, url=FRIENDBOT_URL):
    # testnet only: ask friendbot for starting lumens
    import requests
    r = requests.get(url, params=dict(addr=address), timeout=60)
    if r.status_code >= 400:
        try:
            detail = r.json().get('detail', r.text)
        except ValueError:
            detail = r.text
        raise LedgerError(f"Friendbot failed: {detail}", r.status_code)

    return r.json().get('hash')

# EOF
