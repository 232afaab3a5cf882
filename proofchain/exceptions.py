#
# (c) Copyright 2022 by Coinkite Inc. This file is covered by license found in COPYING-CC.
#
# Exceptions
#

class ProofChainError(RuntimeError):
    pass

class ConfigurationError(ProofChainError):
    pass

class MissingSecretError(ConfigurationError):
    # shared secret (MASTER_TOKEN) absent; never retry, fix the config
    pass

class LedgerError(ProofChainError):
    # payment_hash: set when a badge payment already went through before
    # a later (data-only) transaction failed
    def __init__(self, msg, code=None):
        self.code = code
        self.payment_hash = None
        super().__init__(msg)

class LedgerNotFoundError(LedgerError):
    # account or transaction unknown to Horizon (HTTP 404)
    def __init__(self, msg, code=404):
        super().__init__(msg, code)

class SubmissionError(LedgerError):
    # ledger rejected a transaction; result_codes as reported by Horizon
    def __init__(self, msg, code, result_codes=None):
        self.result_codes = result_codes or {}
        super().__init__(msg, code)

class DecodeError(ValueError):
    # memo payload could not be parsed; stays inside the memo codec
    pass

# EOF
