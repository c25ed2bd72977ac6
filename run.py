"""
Start the auction server

    python run.py
"""
import uvicorn

from auction_engine.core.config import get_settings


def main() -> None:
    settings = get_settings()

    print("=" * 70)
    print(f"{settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    print("=" * 70)
    print(f"   Storage:           {settings.STORAGE_BACKEND}")
    print(f"   Tick interval:     {settings.TICK_INTERVAL}s")
    print(f"   Anti-snipe window: {settings.EXTEND_TIME}s")
    print(f"   Synthetic bidders: {'on' if settings.AI_BID_ENABLED else 'off'}")
    print(f"   Docs:              http://{settings.HOST}:{settings.PORT}/docs")
    print("=" * 70)

    uvicorn.run(
        "auction_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
