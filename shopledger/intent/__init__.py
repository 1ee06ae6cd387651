"""Action classification.

The intent layer turns an operator's free-text message into a `Classification`: either a
non-action (a question) or an action type plus an untrusted payload, which the action validator
then checks before anything is staged.
"""
