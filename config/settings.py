"""
Configuration settings for TopicLens.

Centralized configuration for the query client, local pipeline and
enhancement step.
"""

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent

# Remote query service
QUERY_SERVICE_BASE_URL = os.getenv(
    "QUERY_SERVICE_BASE_URL",
    "https://compute-1.testnet.cere.network/engine/data-service/2606/query"
)
QUERY_TIMEOUT_SECONDS = float(os.getenv("QUERY_TIMEOUT_SECONDS", "30"))

# API Configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# Enhancement (optional LLM summary for custom questions)
ENHANCEMENT_ENABLED = bool(GOOGLE_API_KEY)
ENHANCEMENT_MODEL = "gemini-1.5-flash"
ENHANCEMENT_TEMPERATURE = 0.3
ENHANCEMENT_MAX_OUTPUT_TOKENS = 200
ENHANCEMENT_MAX_CHARS = 1200  # Hard cap on the summary we keep
ENHANCEMENT_MAX_RETRIES = 2
ENHANCEMENT_TIMEOUT_SECONDS = 20

# Query limits
MAX_VERSIONS = 3
TOP_TOPICS_LIMIT = 5

# Insight heuristics
SIGNIFICANT_DIFFERENCE_THRESHOLD = 2  # Disagreement analysis: diff must exceed this
HIGH_DIVERSITY_TOPIC_COUNT = 5
HIGH_INTENSITY_MESSAGES_PER_TOPIC = 10
RECENT_ACTIVITY_FRACTION = 0.25

# Dataset registry (display metadata only)
DATASETS = {
    "2148778849": {
        "name": "Test Dataset",
        "description": "Test dataset for development and validation",
        "github": "https://github.com/cere-io/nlp-datasets/blob/main/test_transcript.json"
    },
    "2148778850": {
        "name": "Aethir Dataset",
        "description": "Aethir community discussions and technical conversations",
        "github": "https://github.com/cere-io/nlp-datasets/blob/main/aethir_transcript.json"
    },
    "2148778853": {
        "name": "AAVE Dataset",
        "description": "AAVE protocol governance and community discussions",
        "github": "https://github.com/cere-io/nlp-datasets/blob/main/aave_transcript.json"
    }
}

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "topiclens.log"


# Design Rationale and Trade-offs:
#
# 1. Why module constants instead of a settings class?
#    - Every agent imports the values it needs directly
#    - Environment overrides only for deployment-specific values (URL, key, logging)
#    - Trade-off: No per-run overrides except through the CLI flags
#
# 2. Why is enhancement enabled by the presence of GOOGLE_API_KEY?
#    - Local analysis never needs a key
#    - No separate on/off flag to keep in sync with the key
#    - Trade-off: --no-enhance is needed to skip Gemini when a key is set
#
# 3. Why MAX_VERSIONS = 3?
#    - The comparison table and report stay readable
#    - Bounds the number of concurrent service calls per query
