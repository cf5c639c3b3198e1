def main() -> None:
    """Run the development server with reload, bound to the configured host and port."""
    import uvicorn

    from app.core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=True,
        reload_dirs=["app"],
        log_level=settings.app.log_level.value.lower(),
    )
