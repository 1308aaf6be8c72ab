"""Constants for event classification and rendering."""

# Links in messages point at the web UI, not the API
GITHUB_WEB_URL = "https://github.com"

# Discord rejects message content longer than this
DISCORD_MESSAGE_LIMIT = 2000

# Marker appended to anything cut short
ELLIPSIS = "…"

# "10.11.2016 08:42:18"; AM/PM is appended separately (%p depends on the locale)
TIMESTAMP_FORMAT = "%d.%m.%Y %I:%M:%S"

DEFAULT_COMMIT_MESSAGE_LENGTH = 72
