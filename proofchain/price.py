#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# XLM/USD price, for showing balances to humans. Uses CoinGecko.
#
import time, logging
from .constants import COINGECKO_PRICE_URL, PRICE_CACHE_TTL, FALLBACK_XLM_PRICE_USD

logger = logging.getLogger(__name__)


class TTLCache:
    # Tiny expiring map. Caller owns it and passes it in, no module globals.

    def __init__(self, ttl=PRICE_CACHE_TTL, clock=time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._data = {}

    def get(self, key, default=None):
        hit = self._data.get(key)
        if hit is None:
            return default
        value, when = hit
        if self.clock() - when >= self.ttl:
            del self._data[key]
            return default
        return value

    def put(self, key, value):
        self._data[key] = (value, self.clock())

    def clear(self):
        self._data.clear()


class PriceFetcher:
    # thin requests wrapper, swap out for tests
    def __init__(self, url=COINGECKO_PRICE_URL, timeout=10):
        import requests
        self.ses = requests.Session()
        self.ses.headers['accept'] = 'application/json'
        self.url = url
        self.timeout = timeout

    def get_json(self, **params):
        r = self.ses.get(self.url, params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()


class PriceService:

    def __init__(self, web=None, cache=None):
        self.web = web or PriceFetcher()
        self.cache = cache if cache is not None else TTLCache()

    def get_xlm_price_usd(self):
        rv = self.cache.get('xlm_usd')
        if rv is not None:
            return rv

        try:
            data = self.web.get_json(ids='stellar', vs_currencies='usd')
            rv = data['stellar']['usd']
            if isinstance(rv, bool) or not isinstance(rv, (int, float)) or rv <= 0:
                raise ValueError(f"Invalid price data: {rv!r}")
        except Exception as exc:
            # price is cosmetic, don't fail the page for it; not cached
            logger.warning("XLM price lookup failed, using fallback: %s", exc)
            return FALLBACK_XLM_PRICE_USD

        self.cache.put('xlm_usd', rv)
        return rv

    def xlm_to_usd(self, xlm):
        return float(xlm) * self.get_xlm_price_usd()

    def usd_to_xlm(self, usd):
        return float(usd) / self.get_xlm_price_usd()


def format_usd(amount):
    return '${:,.2f}'.format(amount)

def format_xlm(amount):
    # 2 to 7 decimals, like the wallet apps
    txt = '{:,.7f}'.format(float(amount)).rstrip('0')
    whole, frac = txt.split('.')
    return '%s.%s XLM' % (whole, frac.ljust(2, '0'))

# EOF
