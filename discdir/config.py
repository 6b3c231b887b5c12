"""
Configuration module for the Discriminator Directory service.
Contains environment variables and other configuration settings.
"""
import os
from dotenv import load_dotenv
from typing import Dict, Any

# Load environment variables
load_dotenv()

# RPC Configuration
SOLANA_RPC_URL = os.getenv('SOLANA_RPC_URL', 'https://api.devnet.solana.com')
DEFAULT_TIMEOUT = float(os.getenv('DEFAULT_TIMEOUT', '30.0'))  # seconds
DEFAULT_MAX_RETRIES = int(os.getenv('DEFAULT_MAX_RETRIES', '3'))
SIGNATURES_LIMIT = int(os.getenv('SIGNATURES_LIMIT', '1000'))

# Database Configuration
DATABASE_PATH = os.getenv(
    'DATABASE_PATH',
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "discriminator_directory.db")
)
DB_TIMEOUT = float(os.getenv('DB_TIMEOUT', '30.0'))  # seconds

# Connection Pool Configuration
POOL_SIZE = int(os.getenv('POOL_SIZE', '5'))

# Ingestion Configuration
LISTENER_CONFIG: Dict[str, Any] = {
    'poll_interval': float(os.getenv('POLL_INTERVAL_SECONDS', '30')),   # Sleep between polling cycles
    'signature_window_size': int(os.getenv('SIGNATURE_WINDOW_SIZE', '1000')),  # Dedup set is cleared past this size
}

# Logging
LOG_DIR = os.getenv('LOG_DIR', 'logs')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()


class Constants:
    """
    Constants used throughout the application.
    """
    # Instruction layout
    DISCRIMINATOR_LENGTH = 8

    # Commitment level trusted for ingestion
    COMMITMENT = "confirmed"


class Config:
    """
    Configuration class for application settings.
    """
    # API Settings
    API_VERSION = "0.1.0"
    API_TITLE = "Discriminator Directory API"
    API_DESCRIPTION = "Directory of Solana program instruction discriminators and their payloads"
