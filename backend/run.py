"""
IMF Africa Pay Backend — Uvicorn Launcher
Run this file to start the server.

Usage:
    python run.py
    python run.py --port 8000
    python run.py --reload
"""
import argparse
import uvicorn

from imfpay.config import get_settings


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="IMF Africa Pay Backend Server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Bind port (default: {settings.PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable hot reload for development")

    args = parser.parse_args()

    print(f"""
    ========================================================
      IMF Africa Pay -- Backend Server
      API:     http://{args.host}:{args.port}
      Health:  http://localhost:{args.port}/api/health
      Docs:    http://localhost:{args.port}/docs
    ========================================================
    """)

    # Single worker: fallback storage lives in process memory
    uvicorn.run(
        "imfpay.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1,
        log_level="info",
    )


if __name__ == "__main__":
    main()
