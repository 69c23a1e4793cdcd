"""
Centralized configuration — all env vars, constants, outreach gates.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

# ── PageSpeed Insights ───────────────────────────────────────────────────────
PAGESPEED_API_KEY = os.getenv('PAGESPEED_API_KEY')
PAGESPEED_API_URL = 'https://www.googleapis.com/pagespeedonline/v5/runPagespeed'
PAGESPEED_TIMEOUT = int(os.getenv('PAGESPEED_TIMEOUT', '90'))

# ── Resend (transactional email) ─────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_API_URL = 'https://api.resend.com/emails'
RESEND_FROM_EMAIL = os.getenv('RESEND_FROM_EMAIL', 'DoneWell Design Co <hello@donewellco.com>')
RESEND_TIMEOUT = int(os.getenv('RESEND_TIMEOUT', '15'))

# ── Calendly ─────────────────────────────────────────────────────────────────
CALENDLY_WEBHOOK_SIGNING_KEY = os.getenv('CALENDLY_WEBHOOK_SIGNING_KEY')
CALENDLY_DISCOVERY_CALL_SLUG = os.getenv('CALENDLY_DISCOVERY_CALL_SLUG', 'discovery-call')
CALENDLY_SIGNATURE_TOLERANCE = 300  # seconds

# ── Agency identity ──────────────────────────────────────────────────────────
AGENCY_NAME = os.getenv('AGENCY_NAME', 'DoneWell Design Co')
AGENCY_URL = os.getenv('AGENCY_URL', 'https://donewellco.com')
AGENCY_SIGNATURE_NAME = os.getenv('AGENCY_SIGNATURE_NAME', 'Kevin L.')
INTERNAL_EMAIL = os.getenv('INTERNAL_EMAIL', 'hello@donewellco.com')
UNSUBSCRIBE_BASE_URL = os.getenv('UNSUBSCRIBE_BASE_URL', 'https://donewellco.com/unsubscribe')
UNSUBSCRIBE_SECRET = os.getenv('UNSUBSCRIBE_SECRET')
OUTREACH_CAMPAIGN = 'audit-outreach'

# ── Audit rate limit ─────────────────────────────────────────────────────────
AUDIT_RATE_LIMIT_PER_URL = int(os.getenv('AUDIT_RATE_LIMIT_PER_URL', '3'))
AUDIT_RATE_LIMIT_WINDOW_HOURS = int(os.getenv('AUDIT_RATE_LIMIT_WINDOW_HOURS', '24'))
AUDIT_GLOBAL_HOURLY_LIMIT = int(os.getenv('AUDIT_GLOBAL_HOURLY_LIMIT', '60'))

# ── Outreach queue gates ─────────────────────────────────────────────────────
BUSINESS_TIMEZONE = os.getenv('BUSINESS_TIMEZONE', 'America/New_York')
BUSINESS_HOURS_START = int(os.getenv('BUSINESS_HOURS_START', '9'))
BUSINESS_HOURS_END = int(os.getenv('BUSINESS_HOURS_END', '17'))
BUSINESS_DAYS = {0, 1, 2, 3, 4}  # Mon–Fri
DAILY_SEND_CAP = int(os.getenv('DAILY_SEND_CAP', '20'))
QUEUE_SPACING_MINUTES = int(os.getenv('QUEUE_SPACING_MINUTES', '15'))
QUEUE_CLAIM_ATTEMPTS = 3

# ── Monitoring ───────────────────────────────────────────────────────────────
INCIDENT_FAILURE_THRESHOLD = int(os.getenv('INCIDENT_FAILURE_THRESHOLD', '2'))
HEALTH_CHECK_LOOKBACK = 5
HEALTH_CHECK_DEFAULT_TIMEOUT_MS = 10000
REPORT_TIERS = ('essentials', 'care')

# ── Score thresholds ─────────────────────────────────────────────────────────
HIGH_SCORE_THRESHOLD = 80

# ── Incident severities ──────────────────────────────────────────────────────
SEVERITIES = ['sev-1', 'sev-2', 'sev-3']
