from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI-compatible chat model (OpenRouter, DashScope, Ollama, LM Studio, ...)
    llm_api_key: str = ""
    llm_model: str = "qwen-plus"
    llm_base_url: str = "https://dashscope-intl.aliyuncs.com/compatible-mode/v1"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 8192
    llm_timeout_s: float = 120.0
    # Language the model should answer in
    language: str = "English"
    # Shift the "Current Time" shown to the model; 0 keeps local time
    timezone_hour_offset: float = 0.0
    # Selects agents/prompts/<agent>_<version>.yaml
    prompt_version: str = "v1"
    log_level: str = "info"
    # Log graph node starts and token usage for every run
    log_on_start: bool = True
    # Also log node inputs (can be large)
    log_inputs: bool = False
    # Rules per sub-run and concurrent sub-runs for parallel rule matching
    batch_size: int = 2
    max_concurrency: int = 4
    # Write a Mermaid diagram of every compiled graph here; empty = disabled
    visualize_dir: str = ""
    # Langfuse Cloud observability
    langfuse_public_key: str = ""
    langfuse_secret_key: str = ""
    langfuse_base_url: str = "https://us.cloud.langfuse.com"
    # Conversation memory
    memory_compact_threshold: int = 4
    memory_ttl_days: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
