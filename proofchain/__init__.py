#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#

__version__ = '0.1.0'

__all__ = [ 'proto', 'exceptions', 'horizon', 'constants', 'utils', 'keys', 'memo',
            'scanner', 'issuance', 'price' ]

# deterministic issuer/user addresses
from proofchain.keys import derive, derive_address

# main object for issuing and reading badges, wants a ledger
from proofchain.proto import ProofChain
