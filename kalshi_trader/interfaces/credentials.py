"""
Kalshi API credentials.

API v2 authenticates every request with an RSA-PSS signature, so a key ID
and the matching RSA private key (inline PEM or a file path) are required.
"""

import os
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass
class KalshiCredentials:
    """
    Key ID plus RSA private key, from `Config` or built directly in tests.

    When both are set, inline `private_key_pem` wins over `private_key_path`.
    """
    api_key_id: str = ""
    private_key_path: str = ""
    private_key_pem: str = ""

    @property
    def key_file(self) -> str:
        return os.path.expanduser(self.private_key_path) if self.private_key_path else ""

    def validate(self) -> Tuple[bool, str]:
        """Returns (is_valid, error_message)."""
        if not self.api_key_id.strip():
            return False, "Missing Kalshi API Key ID"

        if self.private_key_pem:
            if "-----BEGIN" not in self.private_key_pem:
                return False, "Invalid PEM format (missing BEGIN marker)"
            if "PRIVATE KEY" not in self.private_key_pem:
                return False, "Invalid PEM format (not a private key)"
            return True, ""

        if not self.key_file:
            return False, "Missing Kalshi private key (set KALSHI_PRIVATE_KEY_PATH or KALSHI_PRIVATE_KEY_PEM)"
        if not os.path.isfile(self.key_file):
            return False, f"Private key file not found: {self.private_key_path}"
        return True, ""

    def get_private_key_pem(self) -> str:
        if self.private_key_pem:
            # .env files often store the PEM on one line with literal \n
            return self.private_key_pem.replace("\\n", "\n")

        if self.key_file:
            with open(self.key_file, 'r') as f:
                return f.read()

        return ""

    def to_client_kwargs(self) -> Dict[str, str]:
        return {
            "api_key_id": self.api_key_id.strip(),
            "private_key_pem": self.get_private_key_pem(),
        }

    @classmethod
    def from_config(cls, config) -> 'KalshiCredentials':
        return cls(
            api_key_id=config.KALSHI_API_KEY_ID,
            private_key_path=config.KALSHI_PRIVATE_KEY_PATH,
            private_key_pem=config.KALSHI_PRIVATE_KEY_PEM,
        )
