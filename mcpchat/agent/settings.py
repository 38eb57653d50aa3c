from dotenv import load_dotenv

from ..common.config import load_app_config, load_prompts_config


# Load .env early so environment variables are available even if main is not imported.
load_dotenv()

APP_CONFIG = load_app_config()
PROMPTS_CONFIG = load_prompts_config()

DEFAULT_SYSTEM_PROMPT = PROMPTS_CONFIG["system"]
DEFAULT_MODEL = APP_CONFIG["default_model"]
AVAILABLE_MODELS = APP_CONFIG["available_models"]
DEFAULT_MAX_OUTPUT_TOKENS = APP_CONFIG["max_output_tokens"]
MAX_STEPS = APP_CONFIG["max_steps"]
MAX_DURATION = APP_CONFIG["max_duration"]
CONNECT_TIMEOUT = APP_CONFIG["connect_timeout"]
