"""Global pytest configuration."""

import os

# Tests run against in-memory stores and offline providers unless a suite
# builds its own engine or client
os.environ["DATABASE_URL"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["TICKETMASTER_API_KEY"] = ""
os.environ["DAY_REVEAL_DELAY_MS"] = "0"
