"""Default configuration values."""

DEFAULT_MODEL = "gpt-4o"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_API_KEY_ENV = "OPENAI_API_KEY"

# Agent loop
DEFAULT_MAX_ITERATIONS = 50  # Turns before asking the user whether to continue
DEFAULT_MAX_RETRIES = 2  # Provider retries per turn (401 is never retried)
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0

# Session behaviour
DEFAULT_AUTO_APPROVE = False
DEFAULT_SHOW_REASONING = True

# Config file locations
GLOBAL_CONFIG_DIR = ".conductor"
GLOBAL_CONFIG_FILENAME = "config.jsonc"
PROJECT_CONFIG_FILENAMES = ("conductor.jsonc", "conductor.json", ".conductor/config.jsonc")

# Model provider presets, selected with the "provider" config key
DEFAULT_MODEL_PROVIDERS = {
    "openai": {
        "name": "OpenAI",
        "base_url": "https://api.openai.com/v1",
        "env_key": "OPENAI_API_KEY",
        "default_model": "gpt-4o",
    },
    "openrouter": {
        "name": "OpenRouter",
        "base_url": "https://openrouter.ai/api/v1",
        "env_key": "OPENROUTER_API_KEY",
        "default_model": "openai/gpt-4o",
    },
    "ollama": {
        "name": "Ollama (Local)",
        "base_url": "http://localhost:11434/v1",
        "env_key": None,  # No API key needed
        "default_model": "llama3.2",
    },
    "lmstudio": {
        "name": "LM Studio (Local)",
        "base_url": "http://localhost:1234/v1",
        "env_key": None,
        "default_model": "local-model",
    },
}
