"""slackbridge: signed Slack slash-command bridge with deferred lookups.

The enqueue side verifies and acknowledges the slash command inside Slack's
three-second window; the worker side resolves the query and posts the
result to the command's response_url.
"""

__version__ = "0.1.0"
