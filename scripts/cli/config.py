"""CLI configuration: session token variable, default clerk name."""

import os

# Session token issued by ``login``; used when --token is not given
TOKEN_ENV = "RECORDS_SESSION_TOKEN"

# Clerk name recorded as ``updatedBy`` when no session token is given
DEFAULT_ACTOR = os.environ.get("RECORDS_CLI_ACTOR", "clerk")
