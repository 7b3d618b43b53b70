"""
Settings taken from the environment (and a local .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()

DB_URL = os.getenv("DB_URL", "sqlite:///./data_db/objects.sqlite")
SAMPLE_SIZE = int(os.getenv("SAMPLE_SIZE", "1000"))
LZ4_LEVEL = int(os.getenv("LZ4_LEVEL", "10"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
REF_GLOB = os.getenv("REF_GLOB", "refs/heads/*")
