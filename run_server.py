"""
Start the relay with uvicorn.

Listens on HOST:PORT from the environment (default 0.0.0.0:8080). Runs a
single worker: the participant registry lives in process memory.
"""

if __name__ == "__main__":
    import uvicorn

    from chat_relay.settings import app_settings

    uvicorn.run(
        "chat_relay:application",
        factory=True,
        host=app_settings.HOST,
        port=app_settings.PORT,
        log_config=None,
    )
