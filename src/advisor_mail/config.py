import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from yaml.loader import SafeLoader

# ----------------------------
# Configuration and Setup
# ----------------------------

# Model used for the assistant unless config.yaml overrides it
MODEL = 'gpt-4o'

DEFAULT_INSTRUCTIONS = (
    "You are an email based AI Academic Advisor. "
    "Provide information about the student's academic journey, courses, and other academic-related topics. "
    "Use the attached files to answer questions accurately. "
    "Please return your response in a format suitable for professional/educational emails."
)


def configure_logging(level: int = logging.DEBUG) -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        handlers=[logging.StreamHandler()]
    )


def load_environment(env_path: Union[str, Path] = Path('.') / '.env') -> str:
    """
    Load variables from a '.env' file when one exists.

    Returns:
        str: "development" when the file was loaded, "production" otherwise
    """
    env_path = Path(env_path)
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        logging.debug(".env file loaded.")
        return "development"
    logging.debug("Assuming production environment.")
    return "production"


def get_env_variable(var_name: str, default: Optional[str] = None) -> Optional[str]:
    """Retrieve an environment variable, falling back to ``default``."""
    return os.getenv(var_name, default)


def get_and_validate_env(var_name: str, display_name: str) -> Optional[str]:
    """
    Retrieve and validate an environment variable.

    Args:
        var_name: Name of the environment variable to retrieve
        display_name: Human-readable name for the variable (used in error messages)

    Returns:
        The value of the environment variable or None if not found
    """
    value = get_env_variable(var_name)
    if not value:
        logging.error(f"{display_name} not found. Please check your .env file or environment.")
    return value

# ----------------------------
# Settings
# ----------------------------

@dataclass
class Settings:
    """
    Tunables read from config.yaml.

    Attributes:
        model: Model used when creating the assistant
        knowledge_file: Optional file uploaded to the assistant's vector store
        poll_interval_ms: Delay between run status checks
        run_timeout_seconds: Budget for a run to reach a terminal status
        cancel_on_timeout: Cancel a run that is still active when polling times out
        max_responses_per_category: Capacity of each response log category
        history_limit: Number of stored messages replayed as thread context
        wrap_width: Column at which reply bodies are wrapped
    """
    model: str = MODEL
    assistant_name: str = "Academic Advisor"
    instructions: str = DEFAULT_INSTRUCTIONS
    temperature: Optional[float] = 0.1
    top_p: Optional[float] = 0.1
    knowledge_file: Optional[str] = None
    poll_interval_ms: int = 1000
    run_timeout_seconds: float = 60.0
    cancel_on_timeout: bool = False
    max_responses_per_category: int = 100
    history_limit: int = 10
    wrap_width: int = 70

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            logging.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
        return cls(**{key: value for key, value in values.items() if key in known})


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    The path defaults to $ADVISOR_SETTINGS, then 'config.yaml'. A missing file
    yields the defaults.
    """
    path = Path(path or get_env_variable("ADVISOR_SETTINGS") or "config.yaml")
    if not path.exists():
        logging.debug(f"No settings file at {path}; using defaults.")
        return Settings()
    with open(path) as file:
        values = yaml.load(file, Loader=SafeLoader) or {}
    if not isinstance(values, dict):
        raise ValueError(f"Settings file {path} must contain a mapping.")
    logging.debug(f"Settings loaded from {path}.")
    return Settings.from_dict(values)


@dataclass
class EmailSettings:
    """Mailbox connection details, read from the environment."""
    imap_host: Optional[str] = None
    imap_port: int = 993
    account: Optional[str] = None
    password: Optional[str] = None
    folder: str = "INBOX"
    smtp_host: Optional[str] = None
    smtp_port: int = 587

    @classmethod
    def from_env(cls) -> "EmailSettings":
        return cls(
            imap_host=get_env_variable("EMAIL_IMAP_HOST"),
            imap_port=int(get_env_variable("EMAIL_IMAP_PORT", "993")),
            account=get_env_variable("EMAIL_ACCOUNT"),
            password=get_env_variable("EMAIL_PASSWORD"),
            folder=get_env_variable("EMAIL_FOLDER", "INBOX"),
            smtp_host=get_env_variable("EMAIL_SMTP_HOST"),
            smtp_port=int(get_env_variable("EMAIL_SMTP_PORT", "587")),
        )
