"""Process exit codes for the proofs CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
NOT_FOUND = 3
PARTIAL_FAILURE = 4
EXECUTION_FAILURE = 5
