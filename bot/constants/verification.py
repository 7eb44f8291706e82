CODE_LENGTH = 6
CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CODE_TTL_SECONDS = 1800  # 30 minutes

# Redis keeps the entry a little longer than the code is valid so that an
# expired code can still be told apart from one that was never issued.
CODE_STORE_KEY_PREFIX = "verification_challenges:"
CODE_STORE_REDIS_TTL_SECONDS = CODE_TTL_SECONDS * 2

MIN_FOLLOWERS = 10
MIN_FOLLOWING = 5
MIN_ACCOUNT_AGE_DAYS = 30

# Eligibility criteria names, in evaluation order
CRITERION_MIN_FOLLOWERS = "minFollowers"
CRITERION_MIN_FOLLOWING = "minFollowing"
CRITERION_ACCOUNT_AGE = "accountAge"

INBOX_THREAD_FETCH_AMOUNT = 20
IG_SESSION_MAX_AGE_SECONDS = 6 * 60 * 60

COMMAND_VERIFY = "!verify"
COMMAND_VERIFIED_USERS = "!verified-users"
