"""
User-facing texts sent to Discord.
"""

from constants.verification import (
    CRITERION_ACCOUNT_AGE,
    CRITERION_MIN_FOLLOWERS,
    CRITERION_MIN_FOLLOWING,
    MIN_ACCOUNT_AGE_DAYS,
    MIN_FOLLOWERS,
    MIN_FOLLOWING,
)

INSTRUCTIONS = (
    "Hi! To start the verification:\n\n"
    "1. Follow the **{operator_handle}** profile on Instagram\n"
    "2. Send the following code as an Instagram direct message: **{code}**\n"
    "3. Once done, write here: !verify <your_instagram_username>\n\n"
    "The code is valid for 30 minutes."
)

INSTRUCTIONS_SENT = "I sent you the verification instructions in a direct message! 📬"
DELIVERY_BLOCKED = (
    "I can't send you a direct message. Make sure direct messages are enabled on this server."
)
ALREADY_VERIFIED = "You are already verified!"

SUBMIT_USAGE = "Usage: !verify <instagram_username>"
NO_ACTIVE_CHALLENGE = "Use the !verify command on the server first."
CHALLENGE_EXPIRED = "The verification code has expired. Use !verify on the server again."

VERIFIED = "Verification successful! Role granted. ✅"
PARTIAL_SUCCESS = (
    "Verification succeeded, but I can't find you on the server. Try again later."
)
VERIFICATION_FAILED = "Verification failed: {reason}"

ACCOUNT_NOT_FOUND = "Instagram user not found."
CRITERIA_FAILED_HEADER = "Your account does not meet the following requirements:\n"
CRITERION_LINES = {
    CRITERION_MIN_FOLLOWERS: f"- At least {MIN_FOLLOWERS} followers\n",
    CRITERION_MIN_FOLLOWING: f"- You must follow at least {MIN_FOLLOWING} profiles\n",
    # Declared for parity; the account age criterion is not evaluated.
    CRITERION_ACCOUNT_AGE: f"- The account must be older than {MIN_ACCOUNT_AGE_DAYS} days\n",
}
NOT_FOLLOWING = "The user does not follow the profile yet."
TOKEN_NOT_FOUND = (
    "No message with the verification code was found. "
    "Make sure you sent the code in a direct message."
)
TRANSIENT_ERROR = "An error occurred during verification. Try again shortly."

NO_VERIFIED_USERS = "No verified users."
VERIFIED_USERS_HEADER = "**Verified users:**\n"
VERIFIED_USER_LINE = "- Discord: {display_name}, Instagram: {handle}, Date: {date}\n"
