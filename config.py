import os
import sys

from dotenv import load_dotenv

from enums.currency import Currency
from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)

# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(os.environ.get("RUNTIME_ENVIRONMENT", "DEV"))
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('RUNTIME_ENVIRONMENT', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

# Database
DB_URL = os.environ.get("DB_URL", "sqlite+aiosqlite:///data/marketplace.db")

# Parse CURRENCY with error handling
try:
    CURRENCY = Currency(os.environ.get("CURRENCY", "NGN"))
except ValueError as e:
    valid_currencies = [c.value for c in Currency]
    print(f"\n ERROR: Invalid CURRENCY configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_currencies)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('CURRENCY', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: CURRENCY={valid_currencies[0]}\n", file=sys.stderr)
    sys.exit(1)

# Payment Gateway (Paystack)
PAYSTACK_SECRET_KEY = os.environ.get("PAYSTACK_SECRET_KEY", "")
PAYSTACK_API_URL = os.environ.get("PAYSTACK_API_URL", "https://api.paystack.co")
PAYMENT_CALLBACK_URL = os.environ.get("PAYMENT_CALLBACK_URL", "http://localhost:5000/api/payments/callback")
PAYMENT_PLACEHOLDER_EMAIL_DOMAIN = os.environ.get("PAYMENT_PLACEHOLDER_EMAIL_DOMAIN", "guest.invalid")
PAYMENT_GATEWAY_TIMEOUT_SECONDS = int(os.environ.get("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "30"))

# Contact Validation
DEFAULT_PHONE_COUNTRY_CODE = os.environ.get("DEFAULT_PHONE_COUNTRY_CODE", "234")  # Local numbers "0..." get this prefix

# Order Timeout Configuration
PAYMENT_TIMEOUT_HOURS = int(os.environ.get("PAYMENT_TIMEOUT_HOURS", "24"))  # PENDING orders older than this are cancelled
PRESCRIPTION_TIMEOUT_HOURS = int(os.environ.get("PRESCRIPTION_TIMEOUT_HOURS", "48"))  # PENDING_PRESCRIPTION orders
ORDER_TIMEOUT_SWEEP_INTERVAL_SECONDS = int(os.environ.get("ORDER_TIMEOUT_SWEEP_INTERVAL_SECONDS", "86400"))  # Once a day

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask sensitive data in logs
LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "7"))

# HTTP API
API_HOST = os.environ.get("API_HOST", "0.0.0.0")
API_PORT = int(os.environ.get("API_PORT", "5000"))
