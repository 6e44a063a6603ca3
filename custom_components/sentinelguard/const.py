DOMAIN = "sentinelguard"
VERSION = "0.4.0"

# Config entry keys
CONF_ENTRY_NAME = "entry_name"
CONF_AGENT_URL = "agent_url"
CONF_TOKEN = "token"
CONF_VERIFY_SSL = "verify_ssl"

# Poll intervals per entity domain (seconds)
EVENTS_INTERVAL = 3          # security log console
DEVICES_INTERVAL = 5         # dashboard / device manager
PROCESSES_INTERVAL = 10      # process monitor (processes + critical services)
WHITELIST_INTERVAL = 30
FIREWALL_INTERVAL = 30       # firewall profiles + rules
NETWORK_INTERVAL = 60        # network adapters

# An optimistic patch outlives at most one missed poll
PATCH_STALENESS_FACTOR = 2

# Consecutive poll failures before the poller escalates from warning to error
PERSISTENT_POLL_FAILURES = 3

# Seconds a user-facing acknowledgement stays visible
NOTIFICATION_DURATION = 3.0

# Minimum gap between consecutive commands on the same key queue
REQUEST_DELAY = 0.0

# Agent transport
API_PATH = "/api/v1"
REQUEST_TIMEOUT = 15  # seconds, single attempt

# Event levels
LEVEL_INFO = "INFO"
LEVEL_WARN = "WARN"
LEVEL_ERROR = "ERROR"
LEVEL_BLOCK = "BLOCK"
LEVEL_ALL = "all"
EVENT_LEVELS = (LEVEL_INFO, LEVEL_WARN, LEVEL_ERROR, LEVEL_BLOCK)

# Device status reported by the backend for a healthy device
DEVICE_STATUS_OK = "OK"
DEVICE_STATUS_ERROR = "Error"

SERVICE_STATUS_RUNNING = "Running"

# Recent visible events exposed as entity attributes
MAX_EVENT_ATTRIBUTES = 50

# Event fired on the HA bus for each notification
EVENT_NOTIFICATION = f"{DOMAIN}_notification"

# Entity domains polled from the agent
DOMAIN_DEVICES = "devices"
DOMAIN_WHITELIST = "whitelist"
DOMAIN_FIREWALL = "firewall"
DOMAIN_FIREWALL_RULES = "firewall_rules"
DOMAIN_PROCESSES = "processes"
DOMAIN_SERVICES = "services"
DOMAIN_ADAPTERS = "adapters"
DOMAIN_EVENTS = "events"
