"""Global configuration values."""

import os

# Supabase project (REST + auth endpoints live under this URL)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")

# Seconds before a backend call is abandoned
REQUEST_TIMEOUT = int(os.environ.get("SKILLFUND_REQUEST_TIMEOUT", "15"))

# Max entries on the messages contact list
CONTACTS_LIMIT = int(os.environ.get("SKILLFUND_CONTACTS_LIMIT", "10"))

# Most recent messages scanned when building the contact list
CONTACT_SCAN_LIMIT = int(os.environ.get("SKILLFUND_CONTACT_SCAN_LIMIT", "500"))

LOG_LEVEL = os.environ.get("SKILLFUND_LOG_LEVEL", "INFO").upper()
