"""Identifiers for tenant-owned rows.

Every primary key is a short type prefix followed by 16 hex characters,
so an id pasted into a log line or a URL says what it points at.
"""

import secrets

ORG_PREFIX = "org_"
MEMBER_PREFIX = "mem_"
INVITATION_PREFIX = "inv_"
PROMPT_PREFIX = "prm_"
SCENARIO_PREFIX = "scn_"
EXPECTATION_PREFIX = "exp_"
VARIABLE_PREFIX = "var_"
API_KEY_PREFIX = "key_"


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 64 random bits, hex encoded."""
    return prefix + secrets.token_hex(8)
