"""
Confidence thresholds and system limits.

Every routing, matching and learning decision reads its cut-off from here.
Scores are heuristics in [0, 1], not calibrated probabilities.
"""

# Routing
HYBRID_ROUTING = 0.3
LEARNED_ROUTING = 0.6
FALLBACK_CONFIDENCE = 0.3

# Matching
FUZZY_MATCH = 0.6
FUZZY_WORD_MATCH = 0.5
KNOWLEDGE_MATCH = 0.6

# Knowledge confidence
SEED_CONFIDENCE = 0.8
OWNER_TEACHING_CONFIDENCE = 1.0
REINFORCE_STEP = 0.05
CACHEABLE_LEARNED = 0.8

# LLM response filtering and auto-learning
FILTER_BASE_SUITABILITY = 0.5
FILTER_SUITABILITY = 0.4
FILTER_MAX_ISSUES = 3
AUTO_LEARN = 0.7
MANUAL_APPROVE_MIN = 0.6

# Input
MIN_INPUT_LENGTH = 2

# Response cache
CACHE_TTL_SECONDS = 5 * 60
MAX_CACHE_ENTRIES = 1000

# Conversation sessions
SESSION_TTL_SECONDS = 30 * 60
MAX_CONVERSATION_HISTORY = 20

# Capacity
MAX_KNOWLEDGE_ENTRIES = 10000
MAX_LEARNING_QUEUE = 1000
MAX_UNKNOWN_CASES = 200
MAX_VIOLATION_LOG = 1000
MAX_CONVERSATION_LOG = 1000
MAX_PROMPT_LENGTH = 2000

# Security
MAX_REQUESTS_PER_MINUTE = 60
SPAM_SCORE_BLOCK = 0.7
LOCKOUT_SECONDS = 15 * 60
SECURITY_EVENT_RETENTION_SECONDS = 24 * 60 * 60

# Monitoring (warning, critical)
MEMORY_PERCENT = (80, 95)
CPU_PERCENT = (70, 90)
RESPONSE_TIME_MS = (3000, 5000)
ERROR_RATE_PERCENT = (5, 10)

# Backups
MAX_BACKUPS = 10
