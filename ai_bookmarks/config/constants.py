DEFAULT_CATEGORIES = [
    'Divulgació',
    'Agents',
    'Skills',
    'RAG',
    'Cursos',
    'Notícies',
    'Eines',
    'Altres'
]

# Category used for anything outside the vocabulary and for fallback results
UNCATEGORIZED = 'Altres'
UNTITLED = 'Sense títol'
NO_DESCRIPTION = 'Sense descripció'
FALLBACK_TITLE = 'Tweet sobre IA'

# Links to the source platform itself are never kept as external links
SOURCE_PLATFORM_DOMAINS = ('twitter.com', 'x.com')
ORIGINAL_LINK_TEMPLATE = 'https://twitter.com/i/web/status/{}'

# Field names that show up spliced into a runaway title when a response is cut short
CONTAMINATION_FIELDS = ('category', 'isAI', 'externalLinks', 'originalId')

# Text sent to the classifier
MAX_TEXT_LENGTH = 700
MAX_TEXT_LENGTH_CAP = 1000

# Title repair
TITLE_MAX_LENGTH = 100
TITLE_TRUNCATED_LENGTH = 97
ELLIPSIS = '...'

# Fallback title derived from the raw text
FALLBACK_TITLE_MAX_LENGTH = 80
FALLBACK_TITLE_TRUNCATED_LENGTH = 77

# Pipeline timing (milliseconds unless noted)
MAX_ATTEMPTS = 10
RATE_LIMIT_INITIAL_DELAY_MS = 10000
RATE_LIMIT_MAX_DELAY_MS = 60000
RATE_LIMIT_MULTIPLIER = 1.5
TIMEOUT_RETRY_DELAY_MS = 3000
PARSE_RETRY_DELAY_MS = 2000
ERROR_RETRY_DELAY_MS = 2000
COOLDOWN_MS = 4000
CLASSIFIER_TIMEOUT_SECONDS = 90

# Gemini request defaults
GEMINI_MODEL = 'gemini-2.5-flash'
GEMINI_TEMPERATURE = 0.3
GEMINI_MAX_OUTPUT_TOKENS = 800
