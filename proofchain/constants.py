#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# System constants.
#

# Horizon (Stellar REST API) for the public test network
HORIZON_TESTNET_URL = 'https://horizon-testnet.stellar.org'
FRIENDBOT_URL = 'https://friendbot.stellar.org'

# Stellar network passphrases, hashed into every signature
TESTNET_PASSPHRASE = 'Test SDF Network ; September 2015'
PUBLIC_PASSPHRASE = 'Public Global Stellar Network ; September 2015'

# shown on badge records; contract that was planned to hold certificates
CONTRACT_REF = 'CBZM3AM3TGQ4OWJY2NCDNVTCNXGS7ZVLPUNXQRSRAEQBTDWPKJKCO2NI'

# Badge marker payments carry exactly one stroop of XLM.
# - scanning old badges depends on this never changing
MARKER_AMOUNT = '0.0000001'

# stroops per XLM
STROOPS = 10_000_000

# max fee per operation, in stroops (0.001 XLM)
BASE_FEE = 10_000

# seconds a built transaction stays valid
TX_TIMEOUT = 300

# Namespaces for key derivation. Seed string is "{ns}:{identifier}:{secret}"
NS_ORG = 'org'
NS_USER = 'user'
NS_GITHUB = 'github'
NAMESPACES = (NS_ORG, NS_USER, NS_GITHUB)

# only for demo code paths; production must set MASTER_TOKEN
DEMO_MASTER_TOKEN = 'demo-master-token-123'

# Memo wire formats
# - text memo is limited to 28 bytes
# - data entry names and values are limited to 64 bytes each
MEMO_TEXT_LIMIT = 28
DATA_VALUE_LIMIT = 64
COMPACT_MEMO_PREFIX = 'CERT:'
CHUNK_KEY_PREFIX = 'cert_meta_'
CERTIFICATE_MARKER = 'CERTIFICATE'

# event ids are shortened to this many chars to fit memo/key limits
SHORT_ID_LEN = 8

# Payment history window, newest first. Not a full history scan.
SCAN_PAGE_LIMIT = 200

# concurrent transaction/effect lookups during a scan
MAX_CONCURRENT_LOOKUPS = 8

# Stellar caps a transaction at 100 operations; one is the payment
MAX_DATA_ENTRIES_PER_TXN = 99

# badge fields when ledger data can't tell us
UNKNOWN_EVENT = 'unknown'
DEFAULT_EVENT_TITLE = 'Achievement Badge'

# price lookup
COINGECKO_PRICE_URL = 'https://api.coingecko.com/api/v3/simple/price'
PRICE_CACHE_TTL = 60
FALLBACK_XLM_PRICE_USD = 0.11

# EOF
