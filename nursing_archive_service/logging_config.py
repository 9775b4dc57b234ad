import logging
import sys

from config import settings

LOG_LEVEL = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

user_action_logger = logging.getLogger("user_actions")

def get_logger(name: str):
    return logging.getLogger(name)

def log_user_action(user_email: str, action_type: str, resource: str, resource_id) -> None:
    user_action_logger.info(f"User action: user={user_email} action={action_type} resource={resource} id={resource_id}")
