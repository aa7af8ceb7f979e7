"""
Start FastAPI Server
Quick launcher for the Clarity API server
"""

import uvicorn

from clarity.config.settings import SERVER_CONFIG


def main():
    host = SERVER_CONFIG['host']
    port = SERVER_CONFIG['port']

    print("=" * 60)
    print("Starting Clarity API Server")
    print("=" * 60)
    print()
    print("API Documentation will be available at:")
    print(f"  • Swagger UI: http://localhost:{port}/docs")
    print(f"  • ReDoc:      http://localhost:{port}/redoc")
    print()
    print(f"Frontend should connect to: http://localhost:{port}")
    print()
    print("Press CTRL+C to stop the server")
    print("=" * 60)
    print()

    uvicorn.run(
        "clarity.server.main:app",
        host=host,
        port=port,
        log_level=SERVER_CONFIG['log_level'],
        access_log=True
    )


if __name__ == "__main__":
    main()
